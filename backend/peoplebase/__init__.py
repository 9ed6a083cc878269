"""peoplebase: typed document repository over MongoDB."""

__version__ = "0.1.0"
__author__ = "peoplebase Team"

__all__ = ["__version__", "__author__"]
