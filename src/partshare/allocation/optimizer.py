"""
Optimizer / Assigner

Turns a plan into concrete picks. Participants take turns, one unit per
pass, so a participant planned for many units does not drain a part kind
before the others get a chance at it.
"""

from collections.abc import Callable, Mapping

from partshare.allocation.models import Pick
from partshare.allocation.pool import UnitPool
from partshare.allocation.preference import PreferenceModel
from partshare.kernel.errors import PartShareError


def assign_units(
    plan: Mapping[int, int],
    pool: UnitPool,
    preferences: PreferenceModel,
    record_pick: Callable[[Pick], None],
) -> list[Pick]:
    """
    Hand out the pool according to the plan

    Pass k visits participants in ascending id order; each participant with
    plan left takes the unit of the part kind they own least of (earliest
    pool position on ties). Every pick is recorded immediately.

    Args:
        plan: participant id → target count (consumed on a copy)
        pool: Remaining units (consumed)
        preferences: Ownership counts (updated)
        record_pick: Persistence callback invoked once per pick

    Returns:
        Picks in the order they were recorded

    Raises:
        PartShareError: If the plan and the pool do not have the same size
    """
    remaining = {pid: count for pid, count in sorted(plan.items()) if count > 0}
    picks: list[Pick] = []
    passes = max(remaining.values(), default=0)

    for _ in range(passes):
        if not pool:
            break
        for participant_id in list(remaining):
            if not pool:
                break
            part_kind_id = preferences.choose(participant_id, pool)
            unit = pool.take(part_kind_id)
            preferences.record(participant_id, part_kind_id)

            pick = Pick(participant_id, unit.part_kind_id, unit.type_id)
            record_pick(pick)
            picks.append(pick)

            remaining[participant_id] -= 1
            if remaining[participant_id] == 0:
                del remaining[participant_id]

    if pool or remaining:
        raise PartShareError(
            f"Plan and pool mismatch: {len(pool)} units left, "
            f"{sum(remaining.values())} planned units unfilled"
        )
    return picks
