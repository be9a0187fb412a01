"""
PartShare - Main façade class

This is the primary interface for interacting with PartShare. It hides the
ledger, catalog and allocation engine behind a small high-level API.

Example:
    >>> from partshare import PartShare
    >>> ps = PartShare("share.db")
    >>> alice = ps.add_participant(ParticipantSpec(first_name="Alice", last_name="A"))
    >>> bike = ps.add_object(ObjectSpec(name="Bike", parts=[...], types=[...]))
    >>> dist = ps.create_distribution(
    ...     "Spring batch", [alice.participant_id], [{"type_id": 1, "count": 4}]
    ... )
    >>> ps.statistics().total_units
    4
"""

from pathlib import Path
from typing import Any

from partshare.allocation.engine import AllocationEngine, coerce_policy, coerce_selections
from partshare.allocation.models import AllocationPolicy, Distribution, Selection
from partshare.allocation.records import (
    delete_distribution,
    insert_distribution,
    list_distributions,
    load_distribution,
)
from partshare.allocation.statistics import DistributionStatistics, compute_statistics
from partshare.catalog.models import CatalogObject, ObjectSpec, Participant, ParticipantSpec
from partshare.catalog.repository import CatalogRepository
from partshare.kernel.errors import DistributionNotFound, PartShareError
from partshare.kernel.ledger import SQLiteLedger
from partshare.kernel.logging import get_logger
from partshare.kernel.metrics import distributions_created_total, track_operation_duration
from partshare.kernel.retry import retry_on_sqlite_lock
from partshare.kernel.settings import AllocationSettings, SettingsStore, resolve_settings_path
from partshare.kernel.time import RealTimeProvider, TimeProvider
from partshare.kernel.timeout import timeout_context

logger = get_logger(__name__)


class PartShare:
    """
    PartShare main façade

    Provides a unified API for:
    - Participant and object catalog management
    - Creating distributions and allocating them fairly
    - Allocation settings
    - Statistics and backups
    """

    def __init__(
        self,
        db_path: str | Path,
        time_provider: TimeProvider | None = None,
        settings_path: str | Path | None = None,
    ) -> None:
        """
        Initialize PartShare

        Args:
            db_path: Path to SQLite database
            time_provider: Time provider (uses real time if None)
            settings_path: Settings file (defaults next to the database)
        """
        self.db_path = Path(db_path)
        self.time_provider = time_provider or RealTimeProvider()

        self.ledger = SQLiteLedger(self.db_path)
        self.catalog = CatalogRepository(self.ledger)
        self.engine = AllocationEngine(self.ledger)
        self.settings_store = SettingsStore(
            settings_path or resolve_settings_path(self.db_path)
        )

    # ========================================================================
    # Catalog
    # ========================================================================

    def add_participant(self, spec: ParticipantSpec) -> Participant:
        return self.catalog.add_participant(spec, self.time_provider.now())

    def edit_participant(self, participant_id: int, spec: ParticipantSpec) -> Participant:
        return self.catalog.edit_participant(participant_id, spec)

    def delete_participant(self, participant_id: int) -> None:
        self.catalog.delete_participant(participant_id)

    def get_participant(self, participant_id: int) -> Participant:
        return self.catalog.get_participant(participant_id)

    def list_participants(self) -> list[Participant]:
        return self.catalog.list_participants()

    def add_object(self, spec: ObjectSpec) -> CatalogObject:
        return self.catalog.add_object(spec)

    def edit_object(self, object_id: int, spec: ObjectSpec) -> CatalogObject:
        return self.catalog.edit_object(object_id, spec)

    def delete_object(self, object_id: int) -> None:
        self.catalog.delete_object(object_id)

    def get_object(self, object_id: int) -> CatalogObject:
        return self.catalog.get_object(object_id)

    def list_objects(self) -> list[CatalogObject]:
        return self.catalog.list_objects()

    # ========================================================================
    # Distributions
    # ========================================================================

    @track_operation_duration("create_distribution")
    def create_distribution(
        self,
        name: str,
        participant_ids: list[int],
        selections: list[Selection | dict[str, Any]],
        policy: AllocationPolicy | dict[str, Any] | None = None,
        seed: str | None = None,
    ) -> Distribution:
        """
        Create a distribution and allocate it in one transaction

        Args:
            name: Distribution name
            participant_ids: Invited participants
            selections: Requested kits ({"type_id", "count"} or Selection)
            policy: Fairness policy (uses settings if None)
            seed: Seed for reproducible random policies

        Returns:
            The populated distribution record

        Raises:
            PreconditionViolation: Request rejected, nothing written
            OperationTimeout: Run exceeded the configured timeout, nothing written
            LedgerError: Storage failure, nothing written
        """
        if not name or not name.strip():
            raise PartShareError("Distribution name cannot be empty")

        settings = self.get_settings()
        if policy is None:
            policy = AllocationPolicy(
                type=settings.algorithm_type, count=settings.algorithm_count
            )
        resolved_policy = coerce_policy(policy)
        if seed is not None:
            resolved_policy = resolved_policy.model_copy(update={"seed": seed})
        resolved_selections = coerce_selections(selections)

        with timeout_context(settings.allocation_timeout_seconds, "allocate"):
            with self.ledger.transaction() as session:
                # Reject before the record's foreign keys can mask the reason
                self.engine.check_request(session, participant_ids, resolved_selections)
                distribution_id = insert_distribution(
                    session,
                    name.strip(),
                    self.time_provider.now(),
                    participant_ids,
                    resolved_selections,
                )
                result = self.engine.allocate_in(
                    session,
                    distribution_id,
                    participant_ids,
                    resolved_selections,
                    resolved_policy,
                )
                distribution = load_distribution(session, distribution_id)

        distributions_created_total.labels(policy=resolved_policy.type.value).inc()
        logger.info(
            "Distribution created",
            distribution_id=distribution_id,
            policy=resolved_policy.type.value,
            pool_size=result.pool_size,
            participants=len(distribution.participant_ids),
        )
        return distribution

    @retry_on_sqlite_lock()
    def list_distributions(self) -> list[Distribution]:
        """All distributions, most recent first"""
        with self.ledger.transaction() as session:
            return list_distributions(session)

    @retry_on_sqlite_lock()
    def get_distribution(self, distribution_id: int) -> Distribution:
        """
        Raises:
            DistributionNotFound: If no distribution has this id
        """
        with self.ledger.transaction() as session:
            distribution = load_distribution(session, distribution_id)
        if distribution is None:
            raise DistributionNotFound(distribution_id)
        return distribution

    def cancel_distribution(self, distribution_id: int) -> None:
        """
        Delete a distribution with its selections and assignments

        Raises:
            DistributionNotFound: If no distribution has this id
        """
        with self.ledger.transaction() as session:
            if not delete_distribution(session, distribution_id):
                raise DistributionNotFound(distribution_id)
        logger.info("Distribution cancelled", distribution_id=distribution_id)

    # ========================================================================
    # Settings, statistics and backup
    # ========================================================================

    def get_settings(self) -> AllocationSettings:
        return self.settings_store.load()

    def update_settings(self, **changes: Any) -> AllocationSettings:
        return self.settings_store.save(**changes)

    @retry_on_sqlite_lock()
    def statistics(self) -> DistributionStatistics:
        with self.ledger.transaction() as session:
            return compute_statistics(session)

    def export_dump(self) -> dict[str, Any]:
        """Export the whole database as a versioned JSON-ready dict"""
        return self.ledger.export_dump(self.time_provider.now())

    def import_dump(self, dump: dict[str, Any]) -> dict[str, int]:
        """
        Replace the whole database with a dump from export_dump

        Raises:
            BackupFormatError: If the dump is malformed
        """
        return self.ledger.import_dump(dump)

    def health(self) -> dict[str, Any]:
        """Row counts of the main tables"""
        return {
            "participants": self.ledger.count_rows("participants"),
            "objects": self.ledger.count_rows("objects"),
            "distributions": self.ledger.count_rows("distributions"),
            "assignments": self.ledger.count_rows("assignments"),
        }
