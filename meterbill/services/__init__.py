"""Store adapter, ingestion, energy reports, triggers and notification sink."""
