"""Domain layer: entries, insights, ingestion, achievements, analytics, summaries."""
