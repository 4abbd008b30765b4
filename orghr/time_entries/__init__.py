"""Time entries: check-in / check-out facts and daily aggregation."""
