"""Page storage, buffer pool, catalogue metadata, write-ahead logging and recovery analysis."""

__version__ = "0.1.0"