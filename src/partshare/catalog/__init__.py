"""
Catalog Module

Participants and the object → type → part kind hierarchy. The catalog is the
configuration collaborator of the allocation engine: it supplies the kit
composition that the pool builder expands.
"""

from partshare.catalog.models import (
    CatalogObject,
    KitType,
    ObjectSpec,
    Participant,
    ParticipantSpec,
    PartKind,
    PartSpec,
    TypeMember,
    TypeSpec,
)
from partshare.catalog.repository import CatalogRepository, load_type_members

__all__ = [
    # Models
    "Participant",
    "ParticipantSpec",
    "PartSpec",
    "TypeSpec",
    "ObjectSpec",
    "PartKind",
    "TypeMember",
    "KitType",
    "CatalogObject",
    # Repository
    "CatalogRepository",
    "load_type_members",
]
