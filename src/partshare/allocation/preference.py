"""
Preference Model

Tracks, per participant, how many units of each part kind they hold so the
optimizer can hand out the part kinds they have least of.
"""

from collections.abc import Iterable

from partshare.allocation.history import HistoricalTotals
from partshare.allocation.models import PartCounts, Unit
from partshare.allocation.pool import UnitPool


class PreferenceModel:
    """Units owned per (participant, part kind), history plus this run"""

    def __init__(self, owned: dict[int, PartCounts]) -> None:
        self._owned = owned

    @classmethod
    def from_history(
        cls,
        participant_ids: Iterable[int],
        historical: HistoricalTotals,
        units: Iterable[Unit],
    ) -> "PreferenceModel":
        """
        Seed ownership from history, restricted to part kinds in the pool

        Part kinds a participant owns but that are not being distributed
        cannot influence the choice, so they are left out.
        """
        in_pool = {unit.part_kind_id for unit in units}
        owned: dict[int, PartCounts] = {}
        for pid in sorted(set(participant_ids)):
            counts = historical.part_counts(pid)
            owned[pid] = PartCounts(
                {kind: qty for kind, qty in counts.items() if kind in in_pool}
            )
        return cls(owned)

    def owned(self, participant_id: int, part_kind_id: int) -> int:
        return self._owned.setdefault(participant_id, PartCounts())[part_kind_id]

    def choose(self, participant_id: int, pool: UnitPool) -> int:
        """
        Part kind the participant should receive next

        Lowest owned count wins; ties go to the part kind whose next unit
        comes earliest in the pool.

        Raises:
            ValueError: If the pool is empty
        """
        candidates = [
            (self.owned(participant_id, unit.part_kind_id), position, unit.part_kind_id)
            for position, unit in pool.heads()
        ]
        if not candidates:
            raise ValueError("Cannot choose from an empty pool")
        return min(candidates)[2]

    def record(self, participant_id: int, part_kind_id: int) -> None:
        self._owned.setdefault(participant_id, PartCounts())[part_kind_id] += 1

    def snapshot(self) -> dict[int, dict[int, int]]:
        return {pid: dict(counts) for pid, counts in self._owned.items()}
