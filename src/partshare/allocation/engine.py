"""
Fair Distribution Allocation Engine

Wires the pool builder, historical totals, plan builder, preference model
and optimizer into one allocation run. A run executes inside a single
ledger transaction: it either writes every pick or nothing.
"""

import time
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from pydantic import ValidationError

from partshare.allocation.history import load_historical_totals
from partshare.allocation.models import AllocationPolicy, AllocationResult, Pick, Selection, Unit
from partshare.allocation.optimizer import assign_units
from partshare.allocation.plan import build_plan, make_rng, share_rounds
from partshare.allocation.pool import UnitPool, build_unit_pool
from partshare.allocation.preference import PreferenceModel
from partshare.allocation.records import distribution_exists
from partshare.catalog.repository import load_type_members
from partshare.kernel.errors import (
    DistributionAlreadyAllocated,
    DistributionNotFound,
    EmptyParticipantPool,
    InvalidPolicy,
    ParticipantNotFound,
    PreconditionViolation,
)
from partshare.kernel.ledger import LedgerSession, SQLiteLedger
from partshare.kernel.logging import LogOperation, get_logger
from partshare.kernel.metrics import (
    allocation_duration_seconds,
    plan_size_units,
    precondition_failures_total,
    units_allocated_total,
)

logger = get_logger(__name__)


def coerce_policy(policy: AllocationPolicy | dict[str, Any]) -> AllocationPolicy:
    """
    Accept a policy model or a plain {"type", "count", "seed"} mapping

    Raises:
        InvalidPolicy: On unknown policy type or negative count
    """
    if isinstance(policy, AllocationPolicy):
        return policy
    try:
        return AllocationPolicy.model_validate(policy)
    except ValidationError as e:
        raise InvalidPolicy(_first_error(e)) from e


def coerce_selections(
    selections: Iterable[Selection | dict[str, Any]],
) -> list[Selection]:
    """
    Accept selection models or plain {"type_id", "count"} mappings

    Raises:
        PreconditionViolation: On malformed selections
    """
    result = []
    for selection in selections:
        if isinstance(selection, Selection):
            result.append(selection)
            continue
        try:
            result.append(Selection.model_validate(selection))
        except ValidationError as e:
            raise PreconditionViolation(f"Invalid selection: {_first_error(e)}") from e
    return result


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


class AllocationEngine:
    """
    Executes allocation runs against the ledger

    The engine never retries a run: a failed run rolls back and the caller
    decides what to do next.
    """

    def __init__(self, ledger: SQLiteLedger) -> None:
        self.ledger = ledger

    def allocate(
        self,
        distribution_id: int,
        participants: Sequence[int],
        selections: Iterable[Selection | dict[str, Any]],
        policy: AllocationPolicy | dict[str, Any],
    ) -> AllocationResult:
        """
        Allocate a bundle to participants in its own transaction

        Args:
            distribution_id: Existing distribution without assignments
            participants: Participant ids invited to the run
            selections: Requested kits
            policy: Fairness policy, {type, count} plus optional seed

        Returns:
            AllocationResult summarising the run

        Raises:
            PreconditionViolation: Request rejected before any write
            LedgerError: Storage failure, the whole run is rolled back
        """
        with self.ledger.transaction() as session:
            return self.allocate_in(session, distribution_id, participants, selections, policy)

    def allocate_in(
        self,
        session: LedgerSession,
        distribution_id: int,
        participants: Sequence[int],
        selections: Iterable[Selection | dict[str, Any]],
        policy: AllocationPolicy | dict[str, Any],
    ) -> AllocationResult:
        """Allocate within a transaction the caller already opened"""
        with _rejected_requests(distribution_id=distribution_id):
            resolved_policy = coerce_policy(policy)
            resolved_selections = coerce_selections(selections)
            participant_ids = sorted(set(participants))
            self._check_distribution(session, distribution_id)
            units = self._check_request(session, participant_ids, resolved_selections)

        policy_name = resolved_policy.type.value
        start = time.perf_counter()
        with LogOperation(
            logger,
            "allocate",
            distribution_id=distribution_id,
            policy=policy_name,
            participants=len(participant_ids),
            pool_size=len(units),
        ):
            historical = load_historical_totals(session, participant_ids)
            plan = build_plan(
                participant_ids,
                len(units),
                resolved_policy,
                historical=historical,
                rng=make_rng(resolved_policy.seed),
            )
            plan_size_units.observe(len(units))
            logger.debug("Allocation plan built", distribution_id=distribution_id, plan=plan)

            preferences = PreferenceModel.from_history(participant_ids, historical, units)

            def record(pick: Pick) -> None:
                session.record_pick(
                    distribution_id, pick.participant_id, pick.part_kind_id, pick.type_id
                )

            picks = assign_units(plan, UnitPool(units), preferences, record)

        allocation_duration_seconds.labels(policy=policy_name).observe(
            time.perf_counter() - start
        )
        units_allocated_total.labels(policy=policy_name).inc(len(picks))

        rounds = 0
        if resolved_policy.type.shares_first:
            rounds = share_rounds(len(units), len(participant_ids), resolved_policy.count)
        return AllocationResult(
            distribution_id=distribution_id,
            policy=resolved_policy,
            pool_size=len(units),
            share_rounds=rounds,
            plan=plan,
            picks=len(picks),
        )

    def check_request(
        self,
        session: LedgerSession,
        participants: Sequence[int],
        selections: Iterable[Selection | dict[str, Any]],
    ) -> list[Unit]:
        """
        Validate participants and selections before a distribution row exists

        Lets a caller reject a request before writing the distribution record
        it would allocate into.

        Returns:
            The unit pool the request expands to

        Raises:
            ParticipantNotFound: If a participant id is unknown
            PreconditionViolation: On unknown or empty types, malformed
                selections, or units with nobody to receive them
        """
        with _rejected_requests():
            return self._check_request(
                session, sorted(set(participants)), coerce_selections(selections)
            )

    def _check_distribution(self, session: LedgerSession, distribution_id: int) -> None:
        if not distribution_exists(session, distribution_id):
            raise DistributionNotFound(distribution_id)

        existing = session.count_assignments(distribution_id)
        if existing > 0:
            raise DistributionAlreadyAllocated(distribution_id, existing)

    def _check_request(
        self,
        session: LedgerSession,
        participant_ids: list[int],
        selections: list[Selection],
    ) -> list[Unit]:
        """Validate the request and return the unit pool; writes nothing"""
        if participant_ids:
            placeholders = ", ".join("?" for _ in participant_ids)
            known = {
                row["id"]
                for row in session.execute(
                    f"SELECT id FROM participants WHERE id IN ({placeholders})",
                    participant_ids,
                ).fetchall()
            }
            for pid in participant_ids:
                if pid not in known:
                    raise ParticipantNotFound(pid)

        type_members = load_type_members(session, [s.type_id for s in selections])
        units = build_unit_pool(selections, type_members)

        if units and not participant_ids:
            raise EmptyParticipantPool(len(units))
        return units


@contextmanager
def _rejected_requests(**context: Any) -> Iterator[None]:
    """Count and log rejected requests, then let the error propagate"""
    try:
        yield
    except (PreconditionViolation, ParticipantNotFound) as e:
        reason = type(e).__name__
        precondition_failures_total.labels(reason=reason).inc()
        logger.warning("Allocation request rejected", reason=reason, error=str(e), **context)
        raise
