"""Directory service for operational log entries, logbooks and tags."""
