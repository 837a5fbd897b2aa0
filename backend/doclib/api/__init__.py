"""HTTP surface over the data service."""
