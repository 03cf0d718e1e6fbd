"""Over/under recommendations for player prop projection lines."""

__all__ = [
    "cli",
    "config",
    "constants",
    "exceptions",
    "ingestion",
    "models",
    "pipeline",
    "reporting",
    "review",
    "ops",
    "storage",
]

__version__ = "0.1.0"
