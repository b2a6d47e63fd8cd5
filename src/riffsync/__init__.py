"""riffsync - track reconciliation and offline sync engine."""

__version__ = "0.1.0"
