"""
Allocation Module - Fair Distribution Allocation Engine

Decides who receives which units of a requested bundle:
- Pool builder: selections → flat unit multiset
- Plan builder: how many units per participant (random, less, share_*)
- Preference model + optimizer: which units, favouring part kinds a
  participant has least of
- Statistics over the whole ledger
"""

from partshare.allocation.engine import AllocationEngine
from partshare.allocation.fairness import FairnessIndex
from partshare.allocation.history import HistoricalTotals, load_historical_totals
from partshare.allocation.models import (
    AllocationPolicy,
    AllocationResult,
    Assignment,
    Distribution,
    FairnessPolicy,
    PartCounts,
    Pick,
    Selection,
    Unit,
)
from partshare.allocation.optimizer import assign_units
from partshare.allocation.plan import build_plan, make_rng, share_rounds
from partshare.allocation.pool import UnitPool, build_unit_pool
from partshare.allocation.preference import PreferenceModel
from partshare.allocation.statistics import (
    DistributionStatistics,
    ObjectShare,
    ParticipantShare,
    compute_gini_coefficient,
    compute_statistics,
)

__all__ = [
    # Models
    "FairnessPolicy",
    "AllocationPolicy",
    "Selection",
    "Unit",
    "PartCounts",
    "Pick",
    "Assignment",
    "Distribution",
    "AllocationResult",
    # Engine components
    "HistoricalTotals",
    "load_historical_totals",
    "build_unit_pool",
    "UnitPool",
    "FairnessIndex",
    "build_plan",
    "share_rounds",
    "make_rng",
    "PreferenceModel",
    "assign_units",
    "AllocationEngine",
    # Statistics
    "DistributionStatistics",
    "ParticipantShare",
    "ObjectShare",
    "compute_statistics",
    "compute_gini_coefficient",
]
