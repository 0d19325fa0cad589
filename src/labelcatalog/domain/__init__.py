"""Domain layer: entities, DTOs, ports, exceptions and value objects."""
