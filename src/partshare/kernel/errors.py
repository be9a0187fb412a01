"""
Custom exceptions for PartShare

Well-defined error hierarchy enables precise error handling and
clear error messages for callers of the allocation engine.

Every precondition failure is raised before the first ledger write,
so a rejected request never leaves assignments behind.
"""


class PartShareError(Exception):
    """Base exception for all PartShare errors"""

    pass


class LedgerError(PartShareError):
    """Raised when the SQLite ledger cannot be read or written"""

    pass


class LedgerLocked(LedgerError):
    """Raised when another connection holds the SQLite write lock"""

    pass


class ConfigurationError(PartShareError):
    """Raised when allocation settings are invalid or cannot be persisted"""

    pass


class BackupFormatError(PartShareError):
    """Raised when a backup dump does not have the expected shape"""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid backup file: {reason}")


# Precondition violations (request rejected before any write)


class PreconditionViolation(PartShareError):
    """
    Raised when an allocation request cannot be honoured

    The caller should surface this as a rejected request. Nothing has been
    written to the ledger when this is raised.
    """

    pass


class EmptyParticipantPool(PreconditionViolation):
    """Raised when units must be distributed but nobody is invited"""

    def __init__(self, pool_size: int) -> None:
        self.pool_size = pool_size
        super().__init__(
            f"Cannot distribute {pool_size} units among zero participants"
        )


class UnknownType(PreconditionViolation):
    """Raised when a selection references a type that does not exist"""

    def __init__(self, type_id: int) -> None:
        self.type_id = type_id
        super().__init__(f"Type {type_id} not found")


class TypeWithoutParts(PreconditionViolation):
    """Raised when a selected type has no part kinds to expand"""

    def __init__(self, type_id: int) -> None:
        self.type_id = type_id
        super().__init__(f"Type {type_id} has no part kinds")


class DistributionAlreadyAllocated(PreconditionViolation):
    """Raised when allocating into a distribution that already owns assignments"""

    def __init__(self, distribution_id: int, assignment_count: int) -> None:
        self.distribution_id = distribution_id
        self.assignment_count = assignment_count
        super().__init__(
            f"Distribution {distribution_id} already has {assignment_count} "
            "assignments - a finished run must be cancelled and re-created, not resumed"
        )


class InvalidPolicy(PreconditionViolation):
    """Raised when the fairness policy or its round count is malformed"""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid allocation policy: {reason}")


# Missing records


class NotFoundError(PartShareError):
    """Base class for lookups of records that do not exist"""

    pass


class DistributionNotFound(NotFoundError, PreconditionViolation):
    """Raised when distribution does not exist"""

    def __init__(self, distribution_id: int) -> None:
        self.distribution_id = distribution_id
        super().__init__(f"Distribution {distribution_id} not found")


class ParticipantNotFound(NotFoundError):
    """Raised when participant does not exist"""

    def __init__(self, participant_id: int) -> None:
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} not found")


class ObjectNotFound(NotFoundError):
    """Raised when catalog object does not exist"""

    def __init__(self, object_id: int) -> None:
        self.object_id = object_id
        super().__init__(f"Object {object_id} not found")
