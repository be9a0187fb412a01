"""
Test Helper Functions - Builders and Assertions

Provides reusable builders for catalog data and distributions, plus
assertions over the assignment ledger.
"""

from datetime import datetime

from partshare.allocation.models import Selection
from partshare.allocation.records import insert_distribution
from partshare.catalog.models import (
    CatalogObject,
    ObjectSpec,
    ParticipantSpec,
    PartSpec,
    TypeSpec,
)
from partshare.catalog.repository import CatalogRepository
from partshare.kernel.ledger import SQLiteLedger


def add_participants(
    catalog: CatalogRepository, first_names: list[str], created_at: datetime
) -> list[int]:
    """
    Builder for participants, returned in creation (= ascending id) order

    Example:
        >>> alice, bob = add_participants(catalog, ["Alice", "Bob"], now)
    """
    return [
        catalog.add_participant(
            ParticipantSpec(first_name=name, last_name="Tester"), created_at
        ).participant_id
        for name in first_names
    ]


def add_bike_object(catalog: CatalogRepository) -> CatalogObject:
    """Bike with wheel + frame; types "Wheel only" (1 wheel) and "Full bike" (2 wheels, 1 frame)"""
    return catalog.add_object(
        ObjectSpec(
            name="Bike",
            parts=[PartSpec(name="wheel"), PartSpec(name="frame")],
            types=[
                TypeSpec(name="Wheel only", quantities={"wheel": 1}),
                TypeSpec(name="Full bike", quantities={"wheel": 2, "frame": 1}),
            ],
        )
    )


def add_single_part_object(catalog: CatalogRepository, name: str = "Token") -> tuple[int, int]:
    """
    Object with exactly one part kind of multiplier 1

    Returns:
        (type_id, part_kind_id)
    """
    obj = catalog.add_object(
        ObjectSpec(
            name=name,
            parts=[PartSpec(name="unit")],
            types=[TypeSpec(name="Single", quantities={"unit": 1})],
        )
    )
    return obj.types[0].type_id, obj.parts[0].part_kind_id


def type_id_by_name(obj: CatalogObject, name: str) -> int:
    return next(t.type_id for t in obj.types if t.name == name)


def part_kind_id_by_name(obj: CatalogObject, name: str) -> int:
    return next(p.part_kind_id for p in obj.parts if p.name == name)


def create_distribution_record(
    ledger: SQLiteLedger,
    created_at: datetime,
    participant_ids: list[int],
    selections: list[Selection],
    name: str = "Test distribution",
) -> int:
    """Insert an empty distribution (no assignments yet) and return its id"""
    with ledger.transaction() as session:
        return insert_distribution(session, name, created_at, participant_ids, selections)


def units_per_participant(ledger: SQLiteLedger, distribution_id: int) -> dict[int, int]:
    """Sum of assignment quantities per participant for one distribution"""
    with ledger.transaction() as session:
        rows = session.execute(
            "SELECT participant_id, SUM(quantity) AS total FROM assignments "
            "WHERE distribution_id = ? GROUP BY participant_id",
            (distribution_id,),
        ).fetchall()
    return {row["participant_id"]: row["total"] for row in rows}


def assert_one_row_per_tuple(ledger: SQLiteLedger, distribution_id: int) -> None:
    """Assert no (participant, part kind, type) tuple appears twice"""
    with ledger.transaction() as session:
        rows = session.execute(
            "SELECT participant_id, part_kind_id, type_id, COUNT(*) AS n FROM assignments "
            "WHERE distribution_id = ? GROUP BY participant_id, part_kind_id, type_id",
            (distribution_id,),
        ).fetchall()
    duplicates = [tuple(row) for row in rows if row["n"] > 1]
    assert not duplicates, f"Duplicate assignment rows: {duplicates}"
