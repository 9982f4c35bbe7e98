"""
Layer stores for the silver and gold relations.
"""

from .store import InMemoryLayerStore, LayerStore, fingerprint_checksums, row_checksum

__all__ = [
    "InMemoryLayerStore",
    "LayerStore",
    "fingerprint_checksums",
    "row_checksum",
]
