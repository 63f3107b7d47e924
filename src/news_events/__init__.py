"""Group news headlines into events, score them and produce neutral event summaries."""

__all__ = ["canonical", "config", "detection", "grouping", "models", "store", "summaries"]
