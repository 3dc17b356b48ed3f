"""Idea domain — the record, its revision ledger, and its store.

The stage queue lives in ``ideaqueue.ideas.queue``; it depends on the
bucket catalog and is not re-exported here.
"""

from ideaqueue.ideas.models import Idea, RevisionEntry, RevisionType
from ideaqueue.ideas.store import IdeaStore

__all__ = [
    "Idea",
    "IdeaStore",
    "RevisionEntry",
    "RevisionType",
]
