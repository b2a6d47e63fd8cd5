"""Domain layer: entities, ports, matching rules and exceptions."""
