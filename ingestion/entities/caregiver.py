"""
Caregiver entity: one row becomes a profile, an optional external identifier
and a caregiver row linking the two.
"""

from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import DuplicateError
from ingestion.entities.base import EntityStrategy
from ingestion.transformers.cleaning import (
    clean_email,
    clean_phone,
    clean_text,
    normalize_enum,
    parse_bool,
    parse_date,
    parse_decimal,
    parse_int,
)
from models.base import EmploymentStatus, Gender, ProfileStatus
from models.caregiver import Caregiver, External, Profile
from models.organization import Agency, Franchisor, Location
from schemas.records import CaregiverRecord

logger = logging.getLogger(__name__)


GENDER_LOOKUP = {
    "male": Gender.MALE.value,
    "m": Gender.MALE.value,
    "man": Gender.MALE.value,
    "female": Gender.FEMALE.value,
    "f": Gender.FEMALE.value,
    "woman": Gender.FEMALE.value,
    "prefer_not_to_say": Gender.PREFER_NOT_TO_SAY.value,
    "prefer_not_to_answer": Gender.PREFER_NOT_TO_SAY.value,
    "not_specified": Gender.PREFER_NOT_TO_SAY.value,
    "declined": Gender.PREFER_NOT_TO_SAY.value,
    "other": Gender.OTHER.value,
}

PROFILE_STATUS_LOOKUP = {
    "active": ProfileStatus.ACTIVE.value,
    "inactive": ProfileStatus.INACTIVE.value,
    "deactivated": ProfileStatus.INACTIVE.value,
    "disabled": ProfileStatus.INACTIVE.value,
    "pending": ProfileStatus.PENDING.value,
    "suspended": ProfileStatus.SUSPENDED.value,
    "terminated": ProfileStatus.TERMINATED.value,
}

PROFILE_FIELDS = (
    "franchisor_id",
    "agency_id",
    "location_id",
    "subdomain",
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "gender",
    "birthday_date",
    "certification_level",
    "hourly_rate",
    "onboarding_date",
    "applicant",
    "applicant_status",
    "sstatus",
)


class CaregiverStrategy(EntityStrategy):
    """
    Caregiver rows from CSV exports, HTTP feeds or foreign databases.

    Insert order: profile -> external (reused on exact id + system match)
    -> caregiver.
    """

    name = "caregiver"
    record_class = CaregiverRecord

    aliases = {
        "locations_id": "location_id",
        "external_id": "external_system_id",
        "caregiver_id": "external_system_id",
        "status": "sstatus",
        "birthday": "birthday_date",
        "date_of_birth": "birthday_date",
        "onboarding": "onboarding_date",
        "hire_date": "onboarding_date",
        "phone": "phone_number",
        "external_system": "system_name",
    }
    required_fields = ("first_name", "last_name")

    references = {
        "franchisor_id": Franchisor,
        "agency_id": Agency,
        "location_id": Location,
    }

    def clean(self, data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
        warnings: List[str] = []

        email, email_warning = clean_email(data.get("email"))
        phone, phone_warning = clean_phone(data.get("phone_number"))
        warnings.extend(w for w in (email_warning, phone_warning) if w)

        values = {
            "franchisor_id": parse_int(data.get("franchisor_id")),
            "agency_id": parse_int(data.get("agency_id")),
            # 0 is the legacy export's "no location"
            "location_id": parse_int(data.get("location_id")) or None,
            "subdomain": clean_text(data.get("subdomain")),
            "first_name": clean_text(data.get("first_name")),
            "last_name": clean_text(data.get("last_name")),
            "email": email,
            "phone_number": phone,
            "gender": normalize_enum(data.get("gender"), GENDER_LOOKUP, Gender.OTHER.value),
            "birthday_date": parse_date(data.get("birthday_date")),
            "certification_level": clean_text(data.get("certification_level")),
            "hourly_rate": parse_decimal(data.get("hourly_rate")),
            "onboarding_date": parse_date(data.get("onboarding_date")),
            "applicant": parse_bool(data.get("applicant")),
            "applicant_status": clean_text(data.get("applicant_status")),
            "sstatus": normalize_enum(
                data.get("sstatus"), PROFILE_STATUS_LOOKUP, ProfileStatus.ACTIVE.value
            ) or ProfileStatus.ACTIVE.value,
            "external_system_id": clean_text(data.get("external_system_id")),
            "system_name": clean_text(data.get("system_name")),
        }

        if values["external_system_id"] and not values["system_name"]:
            values["system_name"] = settings.DEFAULT_EXTERNAL_SYSTEM

        for field in ("birthday_date", "onboarding_date", "hourly_rate"):
            self.note_dropped(field, data.get(field), values[field], warnings)

        return values, warnings

    def validate(self, values: Dict[str, Any]) -> List[str]:
        errors = []
        rate = values.get("hourly_rate")
        if rate is not None and rate < 0:
            errors.append("hourly_rate must be non-negative")
        return errors

    async def check_duplicates(
        self,
        session: AsyncSession,
        record: CaregiverRecord,
        exclude_id: Optional[int] = None
    ):
        if record.email:
            query = select(Profile.id).where(Profile.email == record.email)
            if exclude_id is not None:
                own_profile = select(Caregiver.profile_id).where(Caregiver.id == exclude_id).scalar_subquery()
                query = query.where(Profile.id.is_distinct_from(own_profile))
            result = await session.execute(query)
            if result.scalar_one_or_none() is not None:
                raise DuplicateError(
                    f"email '{record.email}' already exists",
                    context={"entity": self.name, "table_name": "profile", "email": record.email}
                )

        if record.external_system_id:
            result = await session.execute(
                select(External).where(External.external_id == record.external_system_id)
            )
            external = result.scalar_one_or_none()
            if external is None:
                return

            if external.system_name != record.system_name:
                raise DuplicateError(
                    f"external id '{record.external_system_id}' is registered "
                    f"under system '{external.system_name}'",
                    context={"entity": self.name, "table_name": "external"}
                )

            query = select(Caregiver.id).where(Caregiver.external_id == external.id)
            if exclude_id is not None:
                query = query.where(Caregiver.id != exclude_id)
            bound = await session.execute(query)
            if bound.scalars().first() is not None:
                raise DuplicateError(
                    f"external id '{record.external_system_id}' already belongs to a caregiver",
                    context={"entity": self.name, "table_name": "caregivers"}
                )

    async def insert(self, session: AsyncSession, record: CaregiverRecord) -> int:
        profile = Profile(**profile_values(record))
        session.add(profile)
        await session.flush()

        external_pk = None
        if record.external_system_id:
            external_pk = await self._resolve_external(session, record)

        caregiver = Caregiver(
            franchisor_id=record.franchisor_id,
            agency_id=record.agency_id,
            profile_id=profile.id,
            external_id=external_pk,
            applicant_status=record.applicant_status,
            status=employment_status(record.sstatus),
        )
        session.add(caregiver)
        await session.flush()

        logger.debug(
            f"Inserted caregiver {caregiver.id} (profile {profile.id}, external {external_pk})",
            extra={"entity": self.name}
        )
        return caregiver.id

    async def current_values(self, session: AsyncSession, record_id: int) -> Optional[Dict[str, Any]]:
        caregiver = await session.get(Caregiver, record_id, populate_existing=True)
        if caregiver is None:
            return None

        values: Dict[str, Any] = {"applicant_status": caregiver.applicant_status}
        if caregiver.profile is not None:
            for field in PROFILE_FIELDS:
                values[field] = getattr(caregiver.profile, field)
        # the caregiver row owns the organization links
        values["franchisor_id"] = caregiver.franchisor_id
        values["agency_id"] = caregiver.agency_id
        if caregiver.external is not None:
            values["external_system_id"] = caregiver.external.external_id
            values["system_name"] = caregiver.external.system_name
        return values

    async def update(self, session: AsyncSession, record_id: int, record: CaregiverRecord) -> int:
        """Rewrite the profile, rebind the external id and refresh the caregiver row"""
        caregiver = await session.get(Caregiver, record_id)

        profile = caregiver.profile
        if profile is None:
            profile = Profile()
            session.add(profile)
        for field, value in profile_values(record).items():
            setattr(profile, field, value)
        await session.flush()

        external_pk = None
        if record.external_system_id:
            external_pk = await self._resolve_external(session, record)

        caregiver.franchisor_id = record.franchisor_id
        caregiver.agency_id = record.agency_id
        caregiver.profile_id = profile.id
        caregiver.external_id = external_pk
        caregiver.applicant_status = record.applicant_status
        caregiver.status = employment_status(record.sstatus)
        await session.flush()

        logger.debug(
            f"Updated caregiver {caregiver.id} (profile {profile.id}, external {external_pk})",
            extra={"entity": self.name}
        )
        return caregiver.id

    async def _resolve_external(self, session: AsyncSession, record: CaregiverRecord) -> int:
        """Reuse an external row on exact id + system match, otherwise create one"""
        result = await session.execute(
            select(External).where(
                External.external_id == record.external_system_id,
                External.system_name == record.system_name,
            )
        )
        external = result.scalar_one_or_none()
        if external is None:
            external = External(
                external_id=record.external_system_id,
                system_name=record.system_name,
            )
            session.add(external)
            await session.flush()
        return external.id


def profile_values(record: CaregiverRecord) -> Dict[str, Any]:
    return {field: getattr(record, field) for field in PROFILE_FIELDS}


def employment_status(sstatus: str) -> str:
    """caregivers.status is active only while the profile is active"""
    if sstatus == ProfileStatus.ACTIVE.value:
        return EmploymentStatus.ACTIVE.value
    return EmploymentStatus.DEACTIVATED.value
