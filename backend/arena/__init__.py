"""Tournament management core: brackets, match lifecycle and standings."""

__version__ = "0.1.0"
