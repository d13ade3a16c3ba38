# schooldesk/services/sibling_service.py
import re
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select

from schooldesk.core.errors import NotFoundError, ValidationError
from schooldesk.core.logging import logger
from schooldesk.models.family import Family
from schooldesk.models.student import Student
from schooldesk.schemas.family import (
    FamilyData,
    FamilyGroup,
    FamilyResponse,
    MobileSuggestion,
    SiblingSuggestions,
    StudentSummary,
)
from .base_service import BaseService

MOBILE_NOISE = re.compile(r"[\s\-.()\[\]]")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_mobile(number: Optional[str]) -> str:
    """Strip spacing and punctuation so '0300-123 4567' matches '03001234567'"""
    if not number:
        return ""
    return MOBILE_NOISE.sub("", number)


def _aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def sibling_sort_key(student: Student) -> Tuple[date, datetime, int]:
    """Admission date, then creation time, then id"""
    created = _aware(student.created_at)
    admitted = student.admission_date
    if admitted is None:
        admitted = created.date() if student.created_at is not None else date.max
    return admitted, created, student.id or 0


def order_siblings(students: Iterable[Student]) -> List[Student]:
    return sorted(students, key=sibling_sort_key)


def sibling_position(student: Student, members: Iterable[Student]) -> int:
    """1-based rank of a student among family members, the student included"""
    ordered = order_siblings(_union_by_id(list(members) + [student]))
    for index, member in enumerate(ordered, start=1):
        if member.id == student.id:
            return index
    return 1


def _union_by_id(students: Iterable[Student]) -> List[Student]:
    unique: "OrderedDict[int, Student]" = OrderedDict()
    for student in students:
        unique.setdefault(student.id, student)
    return list(unique.values())


class SiblingService(BaseService):
    async def _active_members(self, tenant_id: int, family_id: int) -> List[Student]:
        result = await self.db.execute(
            select(Student).where(
                Student.tenant_id == tenant_id,
                Student.family_id == family_id,
                Student.is_active.is_(True)
            )
        )
        return list(result.scalars().all())

    async def get_family(self, tenant_id: int, family_id: int) -> Family:
        return await self._get_scoped(Family, family_id, tenant_id, label="Family")

    async def get_family_students(self, tenant_id: int, family_id: int) -> List[Student]:
        """Active members ordered by sibling position"""
        await self.get_family(tenant_id, family_id)
        members = await self._active_members(tenant_id, family_id)
        return sorted(members, key=lambda s: (s.sibling_discount_position, sibling_sort_key(s)))

    async def detect_by_family(self, tenant_id: int) -> List[FamilyGroup]:
        """Families that already have two or more active students"""
        result = await self.db.execute(
            select(Student).where(
                Student.tenant_id == tenant_id,
                Student.is_active.is_(True),
                Student.family_id.is_not(None)
            )
        )
        grouped: Dict[int, List[Student]] = OrderedDict()
        for student in result.scalars().all():
            grouped.setdefault(student.family_id, []).append(student)

        family_ids = [fid for fid, members in grouped.items() if len(members) >= 2]
        families: Dict[int, Family] = {}
        if family_ids:
            rows = await self.db.execute(
                select(Family).where(Family.tenant_id == tenant_id, Family.id.in_(family_ids))
            )
            families = {family.id: family for family in rows.scalars().all()}

        groups = []
        for family_id in family_ids:
            members = order_siblings(grouped[family_id])
            family = families.get(family_id)
            groups.append(FamilyGroup(
                family_id=family_id,
                family=FamilyResponse.model_validate(family) if family is not None else None,
                students=[StudentSummary.model_validate(s) for s in members],
                count=len(members)
            ))
        return groups

    async def detect_by_mobile(self, tenant_id: int) -> List[MobileSuggestion]:
        """
        Unlinked students who share a guardian mobile number.

        Father and mother numbers both feed the grouping; a student whose two
        numbers are equal is still counted once in that group. Groups where any
        student already belongs to a family are left out.
        """
        result = await self.db.execute(
            select(Student).where(Student.tenant_id == tenant_id, Student.is_active.is_(True))
        )
        groups: Dict[str, "OrderedDict[int, Student]"] = OrderedDict()
        for student in result.scalars().all():
            for number in (student.father_mobile, student.mother_mobile):
                key = normalize_mobile(number)
                if key:
                    groups.setdefault(key, OrderedDict()).setdefault(student.id, student)

        suggestions = []
        for mobile, members_by_id in groups.items():
            members = list(members_by_id.values())
            if len(members) < 2:
                continue
            if any(member.family_id is not None for member in members):
                continue
            members = order_siblings(members)
            suggestions.append(MobileSuggestion(
                mobile=mobile,
                suggested_father_name=next((m.father_name for m in members if m.father_name), None),
                suggested_mother_name=next((m.mother_name for m in members if m.mother_name), None),
                students=[StudentSummary.model_validate(s) for s in members],
                count=len(members)
            ))
        return suggestions

    async def suggest_sibling_groups(self, tenant_id: int) -> SiblingSuggestions:
        confirmed = await self.detect_by_family(tenant_id)
        suggested = await self.detect_by_mobile(tenant_id)
        return SiblingSuggestions(
            confirmed_families=confirmed,
            suggested_by_mobile=suggested,
            total_confirmed=len(confirmed),
            total_suggested=len(suggested)
        )

    def _assign_positions(self, family: Family, members: List[Student]) -> List[Student]:
        ordered = order_siblings(members)
        member_ids = [member.id for member in ordered]
        for position, member in enumerate(ordered, start=1):
            member.family_id = family.id
            member.sibling_discount_position = position
            member.siblings = [mid for mid in member_ids if mid != member.id]
        family.total_children = len(ordered)
        return ordered

    async def link_siblings(
        self,
        tenant_id: int,
        student_ids: List[int],
        family_data: Optional[FamilyData] = None
    ) -> Tuple[Family, List[Student]]:
        """
        Put the given students into one family and renumber everyone in it.

        Nothing is written unless every id exists in the tenant. The first
        family already referenced by one of the students is reused; otherwise a
        new one is seeded from the first student's guardian details. Any other
        family a student leaves is renumbered in the same commit.
        """
        unique_ids = list(dict.fromkeys(student_ids or []))
        if len(unique_ids) < 2:
            raise ValidationError("At least 2 students are required to link siblings")

        result = await self.db.execute(
            select(Student).where(Student.tenant_id == tenant_id, Student.id.in_(unique_ids))
        )
        found = {student.id: student for student in result.scalars().all()}
        missing = [sid for sid in unique_ids if sid not in found]
        if missing:
            raise NotFoundError(
                f"Students not found: {', '.join(str(sid) for sid in missing)}",
                details={"missing_ids": missing}
            )
        students = [found[sid] for sid in unique_ids]

        family: Optional[Family] = None
        for student in students:
            if student.family_id is not None:
                family_result = await self.db.execute(
                    select(Family).where(Family.id == student.family_id, Family.tenant_id == tenant_id)
                )
                family = family_result.scalar_one_or_none()
                if family is not None:
                    break

        updates = family_data.model_dump(exclude_none=True) if family_data is not None else {}
        if family is None:
            first = students[0]
            family = Family(
                tenant_id=tenant_id,
                father_name=first.father_name,
                father_cnic=first.father_cnic,
                father_mobile=first.father_mobile,
                mother_name=first.mother_name,
                mother_mobile=first.mother_mobile,
                address=first.address,
                total_children=0
            )
            self.db.add(family)
            await self.db.flush()
            existing: List[Student] = []
        else:
            existing = await self._active_members(tenant_id, family.id)

        for key, value in updates.items():
            setattr(family, key, value)

        previous_family_ids = list(dict.fromkeys(
            student.family_id for student in students
            if student.family_id is not None and student.family_id != family.id
        ))

        members = self._assign_positions(family, _union_by_id(existing + students))

        await self.db.flush()

        # Families the moved students left keep renumbered ordinals of their own
        for previous_id in previous_family_ids:
            family_result = await self.db.execute(
                select(Family).where(Family.id == previous_id, Family.tenant_id == tenant_id)
            )
            previous = family_result.scalar_one_or_none()
            if previous is None:
                continue
            remaining = await self._active_members(tenant_id, previous_id)
            self._assign_positions(previous, remaining)
            logger.info(
                f"Family {previous_id} left with {len(remaining)} members after merge into {family.id}",
                extra={"tenant_id": tenant_id}
            )

        await self.db.commit()

        logger.info(
            f"Linked {len(members)} students into family {family.id}",
            extra={"tenant_id": tenant_id, "event": "siblings_linked"}
        )
        return family, members

    async def update_sibling_positions(self, tenant_id: int, family_id: int) -> Tuple[Family, List[Student]]:
        """Renumber a family's active members, for example after an admission or withdrawal"""
        family = await self.get_family(tenant_id, family_id)
        members = self._assign_positions(family, await self._active_members(tenant_id, family_id))
        await self.db.commit()
        logger.info(
            f"Recomputed sibling positions for family {family_id}: {len(members)} members",
            extra={"tenant_id": tenant_id}
        )
        return family, members
