"""Face detection with emotion, age and gender enrichment."""

__version__ = "0.1.0"
