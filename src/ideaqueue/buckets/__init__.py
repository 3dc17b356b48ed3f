"""Bucket domain — stage-scoped categorization entries and their catalog."""

from ideaqueue.buckets.catalog import BucketCatalog, load_seed_file
from ideaqueue.buckets.models import Bucket, BucketSeed, DeleteResult
from ideaqueue.buckets.store import BucketStore

__all__ = [
    "Bucket",
    "BucketCatalog",
    "BucketSeed",
    "BucketStore",
    "DeleteResult",
    "load_seed_file",
]
