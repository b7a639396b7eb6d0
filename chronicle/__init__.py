"""Segmented append-only commit log, topic store and stream operators."""

__version__ = "0.1.0"
__all__ = [
    "errors",
    "record",
    "index",
    "time_index",
    "segment",
    "log",
    "topic",
    "operator",
    "processor",
]