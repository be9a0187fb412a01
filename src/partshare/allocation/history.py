"""
Historical Totals Loader

Aggregates the whole assignment ledger, every distribution included, for the
participants of the current run. Recomputed for every run; never cached.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from partshare.allocation.models import PartCounts
from partshare.kernel.ledger import LedgerSession


@dataclass(frozen=True)
class HistoricalTotals:
    """
    Units ever received, per participant and per (participant, part kind)

    Every participant of the run has an entry, 0 when they never received
    anything, so "no history" is never confused with "not a participant".
    """

    per_participant: dict[int, int] = field(default_factory=dict)
    per_part_kind: dict[int, PartCounts] = field(default_factory=dict)

    @classmethod
    def empty(cls, participant_ids: Iterable[int]) -> "HistoricalTotals":
        ids = sorted(set(participant_ids))
        return cls(
            per_participant={pid: 0 for pid in ids},
            per_part_kind={pid: PartCounts() for pid in ids},
        )

    def total(self, participant_id: int) -> int:
        return self.per_participant.get(participant_id, 0)

    def part_counts(self, participant_id: int) -> PartCounts:
        """Copy of the per part kind totals, safe to mutate"""
        return PartCounts(self.per_part_kind.get(participant_id, PartCounts()))


def load_historical_totals(
    session: LedgerSession, participant_ids: Iterable[int]
) -> HistoricalTotals:
    """
    Read historical totals for a set of participants

    Args:
        session: Open ledger transaction
        participant_ids: Participants of the current run

    Returns:
        HistoricalTotals with an entry for every requested participant
    """
    ids = sorted(set(participant_ids))
    totals = session.sum_participant_quantities(ids)
    part_totals = session.sum_participant_part_quantities(ids)
    return HistoricalTotals(
        per_participant={pid: totals.get(pid, 0) for pid in ids},
        per_part_kind={pid: PartCounts(part_totals.get(pid, {})) for pid in ids},
    )
