"""Discovery engine: scheduling, fetching, extraction, dedup and source health."""
