"""
Fairness index for least-loaded planning

A min-heap keyed by (running_total, participant_id). Each unit handed out
goes to the head of the heap, whose total is then bumped, so the next unit
re-evaluates the minimum. Equal totals fall back to ascending participant
id, which keeps the "less" policy fully deterministic.
"""

import heapq
from collections.abc import Mapping


class FairnessIndex:
    """Running totals of one planning pass"""

    def __init__(self, baseline: Mapping[int, int]) -> None:
        """
        Args:
            baseline: participant id → starting running total
        """
        self._totals: dict[int, int] = dict(baseline)
        self._heap: list[tuple[int, int]] = [
            (total, participant_id) for participant_id, total in self._totals.items()
        ]
        heapq.heapify(self._heap)

    def __len__(self) -> int:
        return len(self._totals)

    def least_loaded(self) -> int:
        """Participant that would receive the next unit"""
        if not self._heap:
            raise ValueError("Cannot select from empty fairness index")
        return self._heap[0][1]

    def give(self) -> int:
        """
        Hand one unit to the least-loaded participant

        Returns:
            The participant that received the unit
        """
        if not self._heap:
            raise ValueError("Cannot select from empty fairness index")
        total, participant_id = self._heap[0]
        heapq.heapreplace(self._heap, (total + 1, participant_id))
        self._totals[participant_id] = total + 1
        return participant_id

    def total(self, participant_id: int) -> int:
        return self._totals[participant_id]

    def totals(self) -> dict[int, int]:
        return dict(self._totals)
