"""Multi-threaded TCP chat server with MongoDB-backed accounts."""

__version__ = "0.1.0"