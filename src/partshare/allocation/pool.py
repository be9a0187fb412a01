"""
Pool Builder

Expands the requested kits into the flat multiset of units to distribute,
and keeps track of the units still available while a run progresses.
"""

from collections import deque
from collections.abc import Iterable, Iterator, Mapping, Sequence

from partshare.allocation.models import Selection, Unit
from partshare.catalog.models import TypeMember
from partshare.kernel.errors import TypeWithoutParts, UnknownType


def build_unit_pool(
    selections: Sequence[Selection],
    type_members: Mapping[int, Sequence[TypeMember]],
) -> list[Unit]:
    """
    Flatten selections into units

    Order: selections as requested, members by ascending part kind id, and
    the ``count × quantity`` units of each member next to each other.

    Args:
        selections: Requested kit counts
        type_members: Members of every referenced type (from the catalog)

    Returns:
        Ordered list of units

    Raises:
        UnknownType: If a selection references a type missing from type_members
        TypeWithoutParts: If a selected type has no members

    Example:
        >>> members = {7: [TypeMember(part_kind_id=1, name="wheel", quantity=2)]}
        >>> build_unit_pool([Selection(type_id=7, count=3)], members)
        [Unit(part_kind_id=1, type_id=7), ...]  # 6 units
    """
    pool: list[Unit] = []
    for selection in selections:
        members = type_members.get(selection.type_id)
        if members is None:
            raise UnknownType(selection.type_id)
        if not members:
            raise TypeWithoutParts(selection.type_id)

        for member in sorted(members, key=lambda m: m.part_kind_id):
            copies = selection.count * member.quantity
            if copies > 0:
                pool.extend([Unit(member.part_kind_id, selection.type_id)] * copies)
    return pool


class UnitPool:
    """
    Units still available during a run

    Units are grouped by part kind, each group keeping pool order, so the
    earliest remaining unit of any part kind is found without scanning the
    whole pool.
    """

    def __init__(self, units: Iterable[Unit]) -> None:
        self._by_part_kind: dict[int, deque[tuple[int, Unit]]] = {}
        self._size = 0
        for position, unit in enumerate(units):
            self._by_part_kind.setdefault(unit.part_kind_id, deque()).append(
                (position, unit)
            )
            self._size += 1

    def __len__(self) -> int:
        return self._size

    def __bool__(self) -> bool:
        return self._size > 0

    def part_kind_ids(self) -> set[int]:
        return set(self._by_part_kind)

    def heads(self) -> Iterator[tuple[int, Unit]]:
        """Earliest remaining (position, unit) of every part kind"""
        for queue in self._by_part_kind.values():
            yield queue[0]

    def take(self, part_kind_id: int) -> Unit:
        """
        Remove and return the earliest remaining unit of a part kind

        Raises:
            KeyError: If no unit of that part kind is left
        """
        queue = self._by_part_kind[part_kind_id]
        _, unit = queue.popleft()
        if not queue:
            del self._by_part_kind[part_kind_id]
        self._size -= 1
        return unit
