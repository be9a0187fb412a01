"""
Distribution Statistics

Summaries over the whole assignment ledger: how many units went out, how
evenly they were spread across participants, and how each object's parts
were shared.

Fun fact: The Gini coefficient was published by Corrado Gini in 1912 to
measure wealth inequality - a century later it also tells us whether the
wheels went to everyone or just to the usual suspects!
"""

import math
from collections.abc import Sequence

from pydantic import BaseModel, Field

from partshare.kernel.ledger import LedgerSession


class ParticipantShare(BaseModel):
    """Per participant totals across all distributions"""

    participant_id: int
    display_name: str
    total_units: int = 0
    distributions_participated: int = 0
    participation_rate: float = Field(0.0, description="Percent of distributions invited to")
    share_percent: float = Field(0.0, description="Percent of all units received")


class PartShareBreakdown(BaseModel):
    """Units of one part kind received per participant"""

    part_kind_id: int
    name: str
    total_units: int = 0
    per_participant: dict[int, int] = Field(default_factory=dict)


class ObjectShare(BaseModel):
    """Units handed out for one catalog object"""

    object_id: int
    name: str
    total_units: int = 0
    share_percent: float = 0.0
    parts: list[PartShareBreakdown] = Field(default_factory=list)


class DistributionStatistics(BaseModel):
    """Ledger-wide statistics"""

    total_distributions: int = 0
    total_units: int = 0
    unique_participants: int = 0
    mean_units: float = 0.0
    std_dev_units: float = 0.0
    equity_index: float = 100.0
    gini_coefficient: float = 0.0
    participants: list[ParticipantShare] = Field(default_factory=list)
    objects: list[ObjectShare] = Field(default_factory=list)


def compute_gini_coefficient(values: Sequence[float]) -> float:
    """
    Gini coefficient of a set of non-negative totals

    - 0.0 = perfect equality (everyone received the same)
    - 1.0 = perfect inequality (one participant received everything)

    Example:
        >>> compute_gini_coefficient([2, 2, 2])
        0.0
    """
    if len(values) < 2:
        return 0.0

    sorted_values = sorted(values)
    n = len(sorted_values)
    total = sum(sorted_values)
    if total == 0:
        return 0.0

    # G = (2 * sum(i * x_i)) / (n * sum(x_i)) - (n + 1) / n, x_i ascending
    cumulative = sum((i + 1) * value for i, value in enumerate(sorted_values))
    gini = (2 * cumulative) / (n * total) - (n + 1) / n
    return max(0.0, min(1.0, gini))


def compute_equity_index(values: Sequence[float]) -> tuple[float, float, float]:
    """
    Mean, population standard deviation and equity index of totals

    The equity index is 100 minus the coefficient of variation in percent,
    clamped to [0, 100]; 100 when nothing was distributed.
    """
    if not values:
        return 0.0, 0.0, 100.0
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    std_dev = math.sqrt(variance)
    index = 100 - (std_dev / mean) * 100 if mean > 0 else 100.0
    return mean, std_dev, max(0.0, min(100.0, round(index, 1)))


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def compute_statistics(session: LedgerSession) -> DistributionStatistics:
    """
    Aggregate statistics over every participant and distribution

    Averages are taken over all registered participants, including the
    ones who never received anything.
    """
    total_distributions = session.execute("SELECT COUNT(*) FROM distributions").fetchone()[0]
    total_units = session.execute(
        "SELECT COALESCE(SUM(quantity), 0) FROM assignments"
    ).fetchone()[0]
    unique_participants = session.execute(
        "SELECT COUNT(DISTINCT participant_id) FROM distribution_participants"
    ).fetchone()[0]

    units_by_participant = {
        row["participant_id"]: row["total"]
        for row in session.execute(
            "SELECT participant_id, SUM(quantity) AS total FROM assignments "
            "GROUP BY participant_id"
        ).fetchall()
    }
    invitations = {
        row["participant_id"]: row["invited"]
        for row in session.execute(
            "SELECT participant_id, COUNT(*) AS invited FROM distribution_participants "
            "GROUP BY participant_id"
        ).fetchall()
    }

    participants = []
    for row in session.execute(
        "SELECT id, first_name, last_name FROM participants ORDER BY id"
    ).fetchall():
        pid = row["id"]
        received = units_by_participant.get(pid, 0)
        invited = invitations.get(pid, 0)
        participants.append(
            ParticipantShare(
                participant_id=pid,
                display_name=f"{row['first_name']} {row['last_name']}",
                total_units=received,
                distributions_participated=invited,
                participation_rate=_percent(invited, total_distributions),
                share_percent=_percent(received, total_units),
            )
        )

    totals = [p.total_units for p in participants]
    mean, std_dev, equity = compute_equity_index(totals)

    return DistributionStatistics(
        total_distributions=total_distributions,
        total_units=total_units,
        unique_participants=unique_participants,
        mean_units=mean,
        std_dev_units=std_dev,
        equity_index=equity,
        gini_coefficient=compute_gini_coefficient(totals),
        participants=participants,
        objects=_object_shares(session, total_units),
    )


def _object_shares(session: LedgerSession, total_units: int) -> list[ObjectShare]:
    cursor = session.execute(
        """
        SELECT o.id AS object_id, o.name AS object_name,
               pk.id AS part_kind_id, pk.name AS part_name,
               a.participant_id, SUM(a.quantity) AS total
        FROM assignments a
        JOIN part_kinds pk ON pk.id = a.part_kind_id
        JOIN objects o ON o.id = pk.object_id
        GROUP BY o.id, pk.id, a.participant_id
        ORDER BY o.id, pk.id, a.participant_id
        """
    )
    objects: dict[int, ObjectShare] = {}
    parts: dict[int, PartShareBreakdown] = {}
    for row in cursor.fetchall():
        obj = objects.get(row["object_id"])
        if obj is None:
            obj = ObjectShare(object_id=row["object_id"], name=row["object_name"])
            objects[row["object_id"]] = obj
        part = parts.get(row["part_kind_id"])
        if part is None:
            part = PartShareBreakdown(part_kind_id=row["part_kind_id"], name=row["part_name"])
            parts[row["part_kind_id"]] = part
            obj.parts.append(part)
        part.per_participant[row["participant_id"]] = row["total"]
        part.total_units += row["total"]
        obj.total_units += row["total"]

    for obj in objects.values():
        obj.share_percent = _percent(obj.total_units, total_units)
    return list(objects.values())
