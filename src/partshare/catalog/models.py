"""
Catalog Domain Models

Participants, and the object → type → part kind hierarchy that describes
what can be distributed. The allocation engine only reads these.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def _non_empty(value: str, what: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{what} cannot be empty")
    return value.strip()


class ParticipantSpec(BaseModel):
    """Fields supplied when adding or editing a participant"""

    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    email: str | None = Field(default=None, description="Contact email")
    phone: str | None = Field(default=None, description="Contact phone number")

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: str) -> str:
        return _non_empty(v, "First name")

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v: str) -> str:
        return _non_empty(v, "Last name")


class Participant(ParticipantSpec):
    """A person who can be invited to distributions"""

    participant_id: int = Field(..., description="Opaque participant identifier")
    created_at: datetime = Field(..., description="When the participant was added")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class PartSpec(BaseModel):
    """A part kind declared on an object"""

    name: str = Field(..., description="Part kind name (unique within the object)")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _non_empty(v, "Part name")


class TypeSpec(BaseModel):
    """
    A kit type declared on an object

    quantities maps part names to the number of units of that part in one
    kit. Parts that are missing or set to 0 are not members of the type.
    """

    name: str = Field(..., description="Type name")
    quantities: dict[str, int] = Field(
        default_factory=dict, description="Part name → units per kit"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _non_empty(v, "Type name")

    @field_validator("quantities")
    @classmethod
    def validate_quantities(cls, v: dict[str, int]) -> dict[str, int]:
        for part_name, quantity in v.items():
            if quantity < 0:
                raise ValueError(
                    f"Quantity for part '{part_name}' cannot be negative"
                )
        return v


class ObjectSpec(BaseModel):
    """Complete definition of an object with its parts and types"""

    name: str = Field(..., description="Object name")
    parts: list[PartSpec] = Field(default_factory=list)
    types: list[TypeSpec] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _non_empty(v, "Object name")

    @field_validator("parts")
    @classmethod
    def validate_unique_parts(cls, v: list[PartSpec]) -> list[PartSpec]:
        names = [p.name for p in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate part names: {', '.join(duplicates)}")
        return v


class PartKind(BaseModel):
    """Stored part kind"""

    part_kind_id: int
    object_id: int
    name: str


class TypeMember(BaseModel):
    """Membership of a part kind in a type, with its per-kit multiplier"""

    part_kind_id: int
    name: str
    quantity: int = Field(..., gt=0)


class KitType(BaseModel):
    """Stored kit type with its members"""

    type_id: int
    object_id: int
    name: str
    members: list[TypeMember] = Field(default_factory=list)


class CatalogObject(BaseModel):
    """Stored object with nested parts and types"""

    object_id: int
    name: str
    parts: list[PartKind] = Field(default_factory=list)
    types: list[KitType] = Field(default_factory=list)
