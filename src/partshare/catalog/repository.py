"""
Catalog Repository

CRUD for participants and objects. Editing an object replaces all of its
parts and types, mirroring how the object form is submitted as a whole.
"""

from datetime import datetime

from partshare.catalog.models import (
    CatalogObject,
    KitType,
    ObjectSpec,
    Participant,
    ParticipantSpec,
    PartKind,
    TypeMember,
)
from partshare.kernel.errors import ObjectNotFound, ParticipantNotFound
from partshare.kernel.ledger import LedgerSession, SQLiteLedger
from partshare.kernel.logging import get_logger, redact_context
from partshare.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)


def load_type_members(
    session: LedgerSession, type_ids: list[int]
) -> dict[int, list[TypeMember]]:
    """
    Members of each requested type, ordered by part kind id

    Types that exist but have no members map to an empty list; unknown
    type ids are absent from the result.
    """
    unique_ids = sorted(set(type_ids))
    if not unique_ids:
        return {}
    placeholders = ", ".join("?" for _ in unique_ids)

    members: dict[int, list[TypeMember]] = {
        row["id"]: []
        for row in session.execute(
            f"SELECT id FROM kit_types WHERE id IN ({placeholders})", unique_ids
        ).fetchall()
    }
    cursor = session.execute(
        f"""
        SELECT tp.type_id, tp.part_kind_id, tp.quantity, pk.name
        FROM type_parts tp
        JOIN part_kinds pk ON pk.id = tp.part_kind_id
        WHERE tp.type_id IN ({placeholders})
        ORDER BY tp.type_id, tp.part_kind_id
        """,
        unique_ids,
    )
    for row in cursor.fetchall():
        members[row["type_id"]].append(
            TypeMember(
                part_kind_id=row["part_kind_id"],
                name=row["name"],
                quantity=row["quantity"],
            )
        )
    return members


class CatalogRepository:
    """Participants and objects stored in the ledger database"""

    def __init__(self, ledger: SQLiteLedger) -> None:
        self.ledger = ledger

    # ========================================================================
    # Participants
    # ========================================================================

    def add_participant(self, spec: ParticipantSpec, created_at: datetime) -> Participant:
        with self.ledger.transaction() as session:
            cursor = session.execute(
                """
                INSERT INTO participants (first_name, last_name, email, phone, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (spec.first_name, spec.last_name, spec.email, spec.phone, created_at.isoformat()),
            )
            participant_id = cursor.lastrowid
        logger.info(
            "Participant added",
            participant_id=participant_id,
            **redact_context(spec.model_dump()),
        )
        return self.get_participant(participant_id)

    def edit_participant(self, participant_id: int, spec: ParticipantSpec) -> Participant:
        """
        Raises:
            ParticipantNotFound: If no participant has this id
        """
        with self.ledger.transaction() as session:
            cursor = session.execute(
                """
                UPDATE participants
                SET first_name = ?, last_name = ?, email = ?, phone = ?
                WHERE id = ?
                """,
                (spec.first_name, spec.last_name, spec.email, spec.phone, participant_id),
            )
            if cursor.rowcount == 0:
                raise ParticipantNotFound(participant_id)
        return self.get_participant(participant_id)

    def delete_participant(self, participant_id: int) -> None:
        """Delete a participant together with their assignment history"""
        with self.ledger.transaction() as session:
            cursor = session.execute(
                "DELETE FROM participants WHERE id = ?", (participant_id,)
            )
            if cursor.rowcount == 0:
                raise ParticipantNotFound(participant_id)
        logger.info("Participant deleted", participant_id=participant_id)

    @retry_on_sqlite_lock()
    def get_participant(self, participant_id: int) -> Participant:
        with self.ledger.transaction() as session:
            row = session.execute(
                "SELECT * FROM participants WHERE id = ?", (participant_id,)
            ).fetchone()
        if row is None:
            raise ParticipantNotFound(participant_id)
        return _row_to_participant(row)

    @retry_on_sqlite_lock()
    def list_participants(self) -> list[Participant]:
        with self.ledger.transaction() as session:
            rows = session.execute("SELECT * FROM participants ORDER BY id ASC").fetchall()
        return [_row_to_participant(row) for row in rows]

    # ========================================================================
    # Objects, types and part kinds
    # ========================================================================

    def add_object(self, spec: ObjectSpec) -> CatalogObject:
        with self.ledger.transaction() as session:
            object_id = session.execute(
                "INSERT INTO objects (name) VALUES (?)", (spec.name,)
            ).lastrowid
            _write_object_contents(session, object_id, spec)
        logger.info(
            "Object added",
            object_id=object_id,
            parts=len(spec.parts),
            types=len(spec.types),
        )
        return self.get_object(object_id)

    def edit_object(self, object_id: int, spec: ObjectSpec) -> CatalogObject:
        """
        Rename an object and rebuild its parts and types from the ObjectSpec

        Part kinds and types get new ids. Assignment rows referencing the
        previous ones are removed by cascade, as in a delete.
        """
        with self.ledger.transaction() as session:
            cursor = session.execute(
                "UPDATE objects SET name = ? WHERE id = ?", (spec.name, object_id)
            )
            if cursor.rowcount == 0:
                raise ObjectNotFound(object_id)
            session.execute("DELETE FROM kit_types WHERE object_id = ?", (object_id,))
            session.execute("DELETE FROM part_kinds WHERE object_id = ?", (object_id,))
            _write_object_contents(session, object_id, spec)
        logger.info("Object edited", object_id=object_id)
        return self.get_object(object_id)

    def delete_object(self, object_id: int) -> None:
        with self.ledger.transaction() as session:
            cursor = session.execute("DELETE FROM objects WHERE id = ?", (object_id,))
            if cursor.rowcount == 0:
                raise ObjectNotFound(object_id)
        logger.info("Object deleted", object_id=object_id)

    @retry_on_sqlite_lock()
    def get_object(self, object_id: int) -> CatalogObject:
        with self.ledger.transaction() as session:
            row = session.execute(
                "SELECT id, name FROM objects WHERE id = ?", (object_id,)
            ).fetchone()
            if row is None:
                raise ObjectNotFound(object_id)
            return _load_object(session, row["id"], row["name"])

    @retry_on_sqlite_lock()
    def list_objects(self) -> list[CatalogObject]:
        with self.ledger.transaction() as session:
            rows = session.execute("SELECT id, name FROM objects ORDER BY id ASC").fetchall()
            return [_load_object(session, row["id"], row["name"]) for row in rows]


def _write_object_contents(session: LedgerSession, object_id: int, spec: ObjectSpec) -> None:
    """Insert parts, types and the type/part join rows for an object"""
    part_ids: dict[str, int] = {}
    for part in spec.parts:
        part_ids[part.name] = session.execute(
            "INSERT INTO part_kinds (object_id, name) VALUES (?, ?)",
            (object_id, part.name),
        ).lastrowid

    for type_spec in spec.types:
        type_id = session.execute(
            "INSERT INTO kit_types (object_id, name) VALUES (?, ?)",
            (object_id, type_spec.name),
        ).lastrowid
        # Quantities for undeclared parts are ignored
        for part in spec.parts:
            quantity = type_spec.quantities.get(part.name, 0)
            if quantity > 0:
                session.execute(
                    "INSERT INTO type_parts (type_id, part_kind_id, quantity) VALUES (?, ?, ?)",
                    (type_id, part_ids[part.name], quantity),
                )


def _load_object(session: LedgerSession, object_id: int, name: str) -> CatalogObject:
    parts = [
        PartKind(part_kind_id=row["id"], object_id=object_id, name=row["name"])
        for row in session.execute(
            "SELECT id, name FROM part_kinds WHERE object_id = ? ORDER BY id",
            (object_id,),
        ).fetchall()
    ]
    type_rows = session.execute(
        "SELECT id, name FROM kit_types WHERE object_id = ? ORDER BY id", (object_id,)
    ).fetchall()
    members = load_type_members(session, [row["id"] for row in type_rows])
    types = [
        KitType(
            type_id=row["id"],
            object_id=object_id,
            name=row["name"],
            members=members.get(row["id"], []),
        )
        for row in type_rows
    ]
    return CatalogObject(object_id=object_id, name=name, parts=parts, types=types)


def _row_to_participant(row) -> Participant:
    return Participant(
        participant_id=row["id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        phone=row["phone"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
