"""Term matching, per-dataset execution, aggregation, reports and matrices."""
