"""Call trees, views and text reports for recorded heap allocation traces."""

__version__ = "0.1.0"