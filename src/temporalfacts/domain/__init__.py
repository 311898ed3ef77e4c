"""Domain layer: models, ports and the engine's services."""
