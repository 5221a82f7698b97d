"""Training loop, losses, metrics and config-driven pipelines."""
