"""Revision ledger — the append-only audit log attached to every idea.

Index 0 is always the most recent entry.  Entries are frozen models and
are only ever prepended, so ledger order is the causal order of the
operator actions that produced them.  Callers must append inside the
idea's store transaction; the ledger itself does no I/O.
"""

from __future__ import annotations

from ideaqueue.ideas.models import Idea, RevisionEntry, RevisionType
from ideaqueue.stages import Stage


def append(idea: Idea, entry: RevisionEntry) -> Idea:
    """Prepend *entry* to the idea's revision history and return the idea."""
    idea.revision_history.insert(0, entry)
    return idea


def record(idea: Idea, stage: Stage, type: RevisionType, notes: str) -> RevisionEntry:
    """Build a timestamped entry, prepend it, and return it."""
    entry = RevisionEntry(stage=stage, type=type, notes=notes)
    append(idea, entry)
    return entry


def entries(
    idea: Idea,
    *,
    stage: Stage | None = None,
    type: RevisionType | None = None,
) -> list[RevisionEntry]:
    """Return ledger entries, newest first, optionally filtered."""
    results = idea.revision_history
    if stage is not None:
        results = [e for e in results if e.stage == stage]
    if type is not None:
        results = [e for e in results if e.type == type]
    return list(results)


def latest_guidance(idea: Idea, stage: Stage) -> str | None:
    """Most recent forward guidance recorded while the idea was at *stage*."""
    for entry in idea.revision_history:
        if entry.type == RevisionType.FORWARD and entry.stage == stage:
            return entry.notes
    return None
