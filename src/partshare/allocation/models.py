"""
Allocation Domain Models

Policies, selections, units and distribution records used by the fair
distribution engine.
"""

from collections import Counter
from datetime import datetime
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, Field


class FairnessPolicy(str, Enum):
    """
    Fairness policies deciding how many units each participant receives

    RANDOM: every unit goes to a uniformly random participant
    LESS: every unit goes to the participant with the lowest running total
    SHARE_LESS: equal share rounds first, leftovers via LESS
    SHARE_RANDOM: equal share rounds first, leftovers via RANDOM
    """

    RANDOM = "random"
    LESS = "less"
    SHARE_LESS = "share_less"
    SHARE_RANDOM = "share_random"

    @property
    def shares_first(self) -> bool:
        return self in (FairnessPolicy.SHARE_LESS, FairnessPolicy.SHARE_RANDOM)

    @property
    def leftover_policy(self) -> "FairnessPolicy":
        """Policy applied to units not covered by share rounds"""
        if self in (FairnessPolicy.LESS, FairnessPolicy.SHARE_LESS):
            return FairnessPolicy.LESS
        return FairnessPolicy.RANDOM


class AllocationPolicy(BaseModel):
    """
    Policy for one allocation run

    count only matters for share policies: 0 shares as many full rounds as
    the pool allows. seed makes random policies reproducible.
    """

    type: FairnessPolicy = Field(..., description="Fairness policy")
    count: int = Field(default=0, ge=0, description="Maximum share rounds (0 = all possible)")
    seed: str | None = Field(
        default=None, description="Seed for reproducible random choices"
    )

    model_config = {"frozen": True}


class Selection(BaseModel):
    """Request for a number of kits of one type"""

    type_id: int = Field(..., description="Kit type to distribute")
    count: int = Field(..., ge=0, description="Number of kits requested")


class Unit(NamedTuple):
    """One atomic allocatable item, never persisted"""

    part_kind_id: int
    type_id: int


class PartCounts(Counter):
    """Part kind id → units; missing part kinds read as zero"""


class Pick(NamedTuple):
    """One unit handed to one participant during a run"""

    participant_id: int
    part_kind_id: int
    type_id: int


class Assignment(BaseModel):
    """Persisted quantity of one part kind (from one type) given to a participant"""

    participant_id: int
    part_kind_id: int
    type_id: int
    quantity: int = Field(..., ge=1)


class Distribution(BaseModel):
    """One allocation run with its request and outcome"""

    distribution_id: int
    name: str
    created_at: datetime
    participant_ids: list[int] = Field(default_factory=list)
    selections: list[Selection] = Field(default_factory=list)
    assignments: list[Assignment] = Field(default_factory=list)

    @property
    def total_units(self) -> int:
        return sum(a.quantity for a in self.assignments)

    def units_for(self, participant_id: int) -> int:
        return sum(
            a.quantity for a in self.assignments if a.participant_id == participant_id
        )


class AllocationResult(BaseModel):
    """Summary of a completed allocation run"""

    distribution_id: int
    policy: AllocationPolicy
    pool_size: int
    share_rounds: int
    plan: dict[int, int]
    picks: int
