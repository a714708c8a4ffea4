"""Infrastructure adapters: logging, metrics, cache, job dispatch, database, LLM gateway."""
