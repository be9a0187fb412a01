"""
Plan Builder

Decides HOW MANY units each participant receives. Which units they get is
the optimizer's job.

Fun fact: The Athenian kleroterion picked officials by lottery, yet Athens
still rotated offices so nobody served twice before everyone served once.
The share policies do the same: equal rounds first, chance or need after!
"""

import hashlib
import random
from collections.abc import Iterable

from partshare.allocation.fairness import FairnessIndex
from partshare.allocation.history import HistoricalTotals
from partshare.allocation.models import AllocationPolicy, FairnessPolicy
from partshare.kernel.errors import EmptyParticipantPool, InvalidPolicy


def share_rounds(pool_size: int, participant_count: int, count: int) -> int:
    """
    Number of equal share rounds a share policy can hand out

    Args:
        pool_size: Units in the pool (N)
        participant_count: Participants in the run (P)
        count: Requested rounds, 0 meaning "as many as possible"

    Returns:
        floor(N / P) when count is 0, else min(count, floor(N / P))

    Raises:
        InvalidPolicy: If count is negative

    Example:
        >>> share_rounds(7, 3, 0)
        2
        >>> share_rounds(7, 3, 1)
        1
    """
    if count < 0:
        raise InvalidPolicy(f"round count must be >= 0, got {count}")
    if participant_count <= 0:
        return 0
    possible = pool_size // participant_count
    if count == 0:
        return possible
    return min(count, possible)


def make_rng(seed: str | None = None) -> random.Random:
    """
    Random source for random policies

    A seed string is hashed with SHA-256 so the same seed always yields the
    same run. Without a seed the source is seeded from the OS.
    """
    if seed is None:
        return random.Random()
    seed_int = int(hashlib.sha256(seed.encode("utf-8")).hexdigest(), 16)
    return random.Random(seed_int)


def build_plan(
    participant_ids: Iterable[int],
    pool_size: int,
    policy: AllocationPolicy,
    historical: HistoricalTotals | None = None,
    rng: random.Random | None = None,
) -> dict[int, int]:
    """
    Compute the target unit count of every participant

    Pure function of its inputs: history and randomness are passed in.

    Args:
        participant_ids: Participants of the run (duplicates ignored)
        pool_size: Units to distribute (N)
        policy: Fairness policy and round count
        historical: Prior totals, consulted by "less" style leftovers
        rng: Random source for "random" style leftovers

    Returns:
        participant id → target count, summing exactly to pool_size

    Raises:
        EmptyParticipantPool: If pool_size > 0 and there are no participants
        InvalidPolicy: If the round count is negative
    """
    ids = sorted(set(participant_ids))
    if pool_size > 0 and not ids:
        raise EmptyParticipantPool(pool_size)
    if policy.count < 0:
        raise InvalidPolicy(f"round count must be >= 0, got {policy.count}")

    plan = {pid: 0 for pid in ids}
    remaining = pool_size

    if policy.type.shares_first:
        rounds = share_rounds(pool_size, len(ids), policy.count)
        for pid in ids:
            plan[pid] = rounds
        remaining -= rounds * len(ids)

    if remaining == 0:
        return plan

    if policy.type.leftover_policy is FairnessPolicy.LESS:
        history = historical or HistoricalTotals.empty(ids)
        index = FairnessIndex({pid: history.total(pid) + plan[pid] for pid in ids})
        for _ in range(remaining):
            plan[index.give()] += 1
    else:
        source = rng or make_rng(policy.seed)
        for _ in range(remaining):
            plan[source.choice(ids)] += 1

    return plan
