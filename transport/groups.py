"""
Family Group Collection.

Turns confirmed guest records into family groups (the unit of transport)
and re-derives each group's assigned state from the assignment set.
"""

import logging
from typing import Dict, Iterable, List, Optional

from models import Assignment, FamilyGroup, GuestRecord

logger = logging.getLogger(__name__)


class _DisjointSet:
    """Union-find over guest ids; the smallest id is always the root."""

    def __init__(self, ids: Iterable[int]):
        self.parent = {i: i for i in ids}

    def find(self, i: int) -> int:
        root = i
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[i] != root:
            self.parent[i], i = root, self.parent[i]
        return root

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            lo, hi = min(ra, rb), max(ra, rb)
            self.parent[hi] = lo


class FamilyGroupCollector:
    """
    Derives family groups from guest records.
    """

    @staticmethod
    def group_id_for(primary_guest_id: int) -> str:
        return f"fg{primary_guest_id}"

    def build_groups(self, guest_records: Iterable[GuestRecord]) -> List[FamilyGroup]:
        """
        Group confirmed guests who need transport by family linkage.
        Links are followed transitively and in both directions; links to guests
        who are not travelling are ignored.
        """
        travelling = {g.id: g for g in guest_records if g.is_attending and g.needs_transport}
        if not travelling:
            return []

        links = _DisjointSet(travelling)
        for guest in travelling.values():
            for linked_id in guest.family_link_ids:
                if linked_id in travelling:
                    links.union(guest.id, linked_id)

        components: Dict[int, List[GuestRecord]] = {}
        for guest_id in sorted(travelling):
            components.setdefault(links.find(guest_id), []).append(travelling[guest_id])

        groups = [self._make_group(members) for members in components.values()]
        groups.sort(key=lambda g: g.id)
        logger.info(f"Built {len(groups)} family groups from {len(travelling)} travelling guests")
        return groups

    def _make_group(self, members: List[GuestRecord]) -> FamilyGroup:
        # members arrive sorted by id, so members[0] is the primary guest
        primary = members[0]
        source = self._arrival_source(members)
        if source.id != primary.id:
            logger.debug(f"Group of guest {primary.id} uses arrival details of member {source.id}")

        return FamilyGroup(
            id=self.group_id_for(primary.id),
            primary_guest_id=primary.id,
            member_ids=[m.id for m in members[1:]],
            extra_seats=sum(m.extra_seats for m in members),
            label=primary.name,
            arrival_date=source.arrival_date,
            arrival_time=source.arrival_time,
            arrival_location=source.arrival_location,
        )

    @staticmethod
    def _arrival_source(members: List[GuestRecord]) -> GuestRecord:
        """Primary guest's arrival, else the first member with a complete date and time."""
        for guest in members:
            if guest.arrival_date is not None and guest.arrival_time is not None:
                return guest
        return members[0]

    @staticmethod
    def recompute_assignment(
        groups: Iterable[FamilyGroup],
        assignments: Iterable[Assignment]
    ) -> List[FamilyGroup]:
        """
        Pure: returns copies of `groups` whose assigned flags mirror `assignments`.

        A group also counts as assigned when any of its guests already rides
        in an assignment, even if that assignment was booked under an older
        group id (the primary guest declined and the family was re-keyed).
        """
        owner: Dict[str, Assignment] = {}
        guest_owner: Dict[int, Assignment] = {}
        for assignment in assignments:
            for group_id in assignment.family_group_ids:
                if group_id in owner:
                    logger.error(
                        f"Group {group_id} appears in assignments {owner[group_id].id} and {assignment.id}"
                    )
                    continue
                owner[group_id] = assignment
            for guest_id in assignment.guest_ids:
                guest_owner.setdefault(guest_id, assignment)

        recomputed = []
        for group in groups:
            assignment: Optional[Assignment] = owner.get(group.id)
            if assignment is None:
                assignment = next((guest_owner[g] for g in group.guest_ids if g in guest_owner), None)
                if assignment is not None:
                    logger.warning(
                        f"Group {group.id} shares guests with assignment {assignment.id} "
                        f"({assignment.family_group_ids}); treating it as assigned"
                    )
            recomputed.append(group.model_copy(update={
                "assigned": assignment is not None,
                "assigned_vehicle_type_id": assignment.vehicle_type_id if assignment else None,
            }))
        return recomputed
