"""In-memory key-value store engine with strings, bitmaps, sets, sorted sets and transactions."""

__version__ = "0.1.0"