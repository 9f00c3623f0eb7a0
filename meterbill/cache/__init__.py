"""Redis cache for the latest reading."""
