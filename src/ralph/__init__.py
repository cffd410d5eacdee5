"""Ralph - a dispatcher for AI provider agents."""

__version__ = "0.2.5"
