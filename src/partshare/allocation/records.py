"""
Distribution records

Reads and writes the distribution row together with its participant links,
selections and assignments. All functions work on an open LedgerSession so
that creating a record and allocating into it share one transaction.
"""

from collections.abc import Sequence
from datetime import datetime

from partshare.allocation.models import Assignment, Distribution, Selection
from partshare.kernel.ledger import LedgerSession


def insert_distribution(
    session: LedgerSession,
    name: str,
    created_at: datetime,
    participant_ids: Sequence[int],
    selections: Sequence[Selection],
) -> int:
    """Create the distribution row and its request; returns the new id"""
    cursor = session.execute(
        "INSERT INTO distributions (name, created_at) VALUES (?, ?)",
        (name, created_at.isoformat()),
    )
    distribution_id = cursor.lastrowid
    for pid in sorted(set(participant_ids)):
        session.execute(
            "INSERT INTO distribution_participants (distribution_id, participant_id) "
            "VALUES (?, ?)",
            (distribution_id, pid),
        )
    for selection in selections:
        session.execute(
            "INSERT INTO distribution_selections (distribution_id, type_id, count) "
            "VALUES (?, ?, ?)",
            (distribution_id, selection.type_id, selection.count),
        )
    return distribution_id


def distribution_exists(session: LedgerSession, distribution_id: int) -> bool:
    row = session.execute(
        "SELECT 1 FROM distributions WHERE id = ?", (distribution_id,)
    ).fetchone()
    return row is not None


def load_distribution(session: LedgerSession, distribution_id: int) -> Distribution | None:
    """Full record, or None when the distribution does not exist"""
    row = session.execute(
        "SELECT id, name, created_at FROM distributions WHERE id = ?",
        (distribution_id,),
    ).fetchone()
    if row is None:
        return None

    participant_ids = [
        r["participant_id"]
        for r in session.execute(
            "SELECT participant_id FROM distribution_participants "
            "WHERE distribution_id = ? ORDER BY participant_id",
            (distribution_id,),
        ).fetchall()
    ]
    selections = [
        Selection(type_id=r["type_id"], count=r["count"])
        for r in session.execute(
            "SELECT type_id, count FROM distribution_selections "
            "WHERE distribution_id = ? ORDER BY id",
            (distribution_id,),
        ).fetchall()
    ]
    assignments = [
        Assignment(
            participant_id=r["participant_id"],
            part_kind_id=r["part_kind_id"],
            type_id=r["type_id"],
            quantity=r["quantity"],
        )
        for r in session.execute(
            "SELECT participant_id, part_kind_id, type_id, quantity FROM assignments "
            "WHERE distribution_id = ? ORDER BY participant_id, part_kind_id, type_id",
            (distribution_id,),
        ).fetchall()
    ]
    return Distribution(
        distribution_id=row["id"],
        name=row["name"],
        created_at=datetime.fromisoformat(row["created_at"]),
        participant_ids=participant_ids,
        selections=selections,
        assignments=assignments,
    )


def list_distributions(session: LedgerSession) -> list[Distribution]:
    """All distributions, most recent first"""
    ids = [
        r["id"]
        for r in session.execute(
            "SELECT id FROM distributions ORDER BY created_at DESC, id DESC"
        ).fetchall()
    ]
    return [d for d in (load_distribution(session, i) for i in ids) if d is not None]


def delete_distribution(session: LedgerSession, distribution_id: int) -> bool:
    """Delete a distribution and, by cascade, everything it owns"""
    cursor = session.execute("DELETE FROM distributions WHERE id = ?", (distribution_id,))
    return cursor.rowcount > 0
