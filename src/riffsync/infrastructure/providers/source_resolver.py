"""Content-fetch source resolver.

This adapter implements ISourceResolver on top of the debrid gateway client.
It translates the gateway's raw JSON into domain entities.

Gateway status mapping:
- downloaded → READY (only with at least one stream)
- magnet_conversion, waiting_files_selection, downloading,
  compressing, uploading → DOWNLOADING
- queued → QUEUED
- magnet_error, error, virus → ERROR
- dead → DEAD
- anything else → DOWNLOADING (keep polling, the deadline bounds it)
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from riffsync.domain.entities import (
    BundleSearchResult,
    CandidateFile,
    ResolveResponse,
    ResolveStatus,
    is_audio_filename,
)
from riffsync.domain.exceptions import ProviderError
from riffsync.domain.ports import IContentFetchClient, ISourceResolver, PollResult
from riffsync.infrastructure.polling import PollPolicy, PollStopReason, poll_until

logger = logging.getLogger(__name__)


# Hey future me - these are the raw debrid torrent states as the gateway passes
# them through. The gateway itself also answers "error" when it gave up early
# (missing torrent, bad key), so "error" shows up from both layers.
CONTENT_FETCH_STATE_MAPPING: dict[str, ResolveStatus] = {
    # Terminal - Success
    "downloaded": ResolveStatus.READY,
    "ready": ResolveStatus.READY,  # Alias
    # Active states
    "magnet_conversion": ResolveStatus.DOWNLOADING,
    "waiting_files_selection": ResolveStatus.DOWNLOADING,
    "downloading": ResolveStatus.DOWNLOADING,
    "compressing": ResolveStatus.DOWNLOADING,
    "uploading": ResolveStatus.DOWNLOADING,
    # Pre-transfer
    "queued": ResolveStatus.QUEUED,
    # Terminal - Failure
    "magnet_error": ResolveStatus.ERROR,
    "error": ResolveStatus.ERROR,
    "virus": ResolveStatus.ERROR,
    "dead": ResolveStatus.DEAD,
    "not_found": ResolveStatus.NOT_FOUND,
}


def map_status(raw_status: str | None) -> ResolveStatus:
    """Translate a gateway status string into ResolveStatus."""
    if not raw_status:
        return ResolveStatus.DOWNLOADING
    return CONTENT_FETCH_STATE_MAPPING.get(raw_status.lower(), ResolveStatus.DOWNLOADING)


class ContentFetchSourceResolver(ISourceResolver):
    """Primary resolution path: bundle search, select-and-resolve, bounded poll."""

    def __init__(
        self,
        client: IContentFetchClient,
        poll_interval_seconds: float = 1.5,
        stall_timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """
        Args:
            client: Gateway client
            poll_interval_seconds: Delay between poll attempts
            stall_timeout_seconds: Give up when progress stays at 0 this long
            clock: Monotonic clock (tests pass a fake)
            sleep: Awaitable sleep (tests pass a fake that advances the clock)
        """
        self._client = client
        self._poll_interval = poll_interval_seconds
        self._stall_timeout = stall_timeout_seconds
        self._clock = clock
        self._sleep = sleep

    async def search(self, credential: str, query: str) -> list[BundleSearchResult]:
        """
        Search bundles and keep only their audio files.

        Bundles without a single audio file are dropped.

        Raises:
            ProviderError: Gateway unreachable or answered with an error
        """
        payload = await self._client.search(credential, query)
        if payload.get("error"):
            raise ProviderError("content_fetch", str(payload["error"]))

        bundles: list[BundleSearchResult] = []
        for raw in payload.get("torrents") or []:
            bundle = self._convert_bundle(raw)
            if bundle is not None and bundle.candidate_files:
                bundles.append(bundle)

        logger.debug(
            f"Content-fetch search {query!r}: {len(bundles)} bundles with audio"
        )
        return bundles

    def _convert_bundle(self, raw: dict[str, Any]) -> BundleSearchResult | None:
        bundle_id = str(raw.get("torrentId") or "")
        if not bundle_id:
            return None

        files: list[CandidateFile] = []
        for raw_file in raw.get("files") or []:
            try:
                file_id = int(raw_file["id"])
            except (KeyError, TypeError, ValueError):
                continue
            path = str(raw_file.get("path") or "")
            filename = str(raw_file.get("filename") or path.rsplit("/", 1)[-1])
            if not is_audio_filename(filename):
                continue
            files.append(
                CandidateFile(
                    id=file_id,
                    filename=filename,
                    path=path or filename,
                    parent_bundle_id=bundle_id,
                )
            )

        return BundleSearchResult(
            bundle_id=bundle_id,
            title=str(raw.get("title") or ""),
            candidate_files=files,
            size_label=str(raw.get("size") or "Unknown"),
            source_label=str(raw.get("source") or "Unknown"),
        )

    async def select_and_resolve(
        self, credential: str, bundle_id: str, file_ids: list[int]
    ) -> ResolveResponse:
        """
        Ask the gateway to prepare ``file_ids`` of ``bundle_id``.

        Never raises for provider trouble: an error body or a failed transport
        comes back as status ERROR with the reason in ``error``.
        """
        try:
            payload = await self._client.select_files(credential, bundle_id, file_ids)
        except ProviderError as e:
            logger.warning(f"select_and_resolve {bundle_id}/{file_ids} failed: {e}")
            return ResolveResponse(status=ResolveStatus.ERROR, error=str(e))

        return self._convert_response(payload)

    def _convert_response(self, payload: dict[str, Any]) -> ResolveResponse:
        if payload.get("error"):
            return ResolveResponse(status=ResolveStatus.ERROR, error=str(payload["error"]))

        streams = tuple(
            str(stream["streamUrl"])
            for stream in payload.get("streams") or []
            if isinstance(stream, dict) and stream.get("streamUrl")
        )
        try:
            progress = float(payload.get("progress") or 0)
        except (TypeError, ValueError):
            progress = 0.0

        return ResolveResponse(
            status=map_status(payload.get("status")),
            streams=streams,
            progress=progress,
        )

    async def poll(
        self,
        credential: str,
        bundle_id: str,
        file_id: int,
        max_wait_ms: int = 30000,
    ) -> PollResult:
        """
        Re-issue select_and_resolve until the file is ready.

        Fails on ERROR/DEAD/NOT_FOUND, on zero progress for longer than the
        stall timeout and when ``max_wait_ms`` runs out.
        """

        async def fetch() -> ResolveResponse:
            payload = await self._client.select_files(credential, bundle_id, [file_id])
            return self._convert_response(payload)

        kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep

        outcome = await poll_until(
            fetch,
            is_done=lambda r: r.status == ResolveStatus.READY,
            is_failed=lambda r: r.status.is_failure,
            is_stalled=lambda r: r.progress == 0,
            policy=PollPolicy(
                interval=self._poll_interval,
                deadline=max_wait_ms / 1000,
                stall_deadline=self._stall_timeout,
            ),
            clock=self._clock,
            transient_errors=(ProviderError,),
            label=f"poll {bundle_id}/{file_id}",
            **kwargs,
        )

        if outcome.succeeded and outcome.value is not None:
            return PollResult(
                success=True,
                direct_link=outcome.value.direct_link,
                elapsed_seconds=outcome.elapsed,
                attempts=outcome.attempts,
            )

        return PollResult(
            success=False,
            reason=_failure_reason(outcome.reason, outcome.value),
            elapsed_seconds=outcome.elapsed,
            attempts=outcome.attempts,
            timed_out=outcome.reason in (PollStopReason.STALLED, PollStopReason.TIMEOUT),
        )


def _failure_reason(reason: PollStopReason, last: ResolveResponse | None) -> str:
    if reason == PollStopReason.FAILED and last is not None:
        return last.error or f"provider status {last.status.value}"
    if reason == PollStopReason.STALLED:
        return "stalled at 0% progress"
    return "timed out waiting for file"


__all__ = [
    "CONTENT_FETCH_STATE_MAPPING",
    "ContentFetchSourceResolver",
    "map_status",
]
