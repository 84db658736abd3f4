"""Feed merging and aggregation."""

from .aggregator import aggregate_archives, build_master_archive
from .merge import merge_archive, merge_items, sort_items

__all__ = [
    "aggregate_archives",
    "build_master_archive",
    "merge_archive",
    "merge_items",
    "sort_items",
]
