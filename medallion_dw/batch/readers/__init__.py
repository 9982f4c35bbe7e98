"""
Raw feed readers.
"""

from .feed_reader import FeedReader
from .raw_source import FileRawSource, InMemoryRawSource, RawSource

__all__ = [
    "FeedReader",
    "FileRawSource",
    "InMemoryRawSource",
    "RawSource",
]
