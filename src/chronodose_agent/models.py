"""Typed documents and scan results shared across the agent."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from . import geo
from .dates import parse_timestamp
from .errors import MalformedMetadata

CHRONODOSE_SCHEDULE = "chronodose"
LIVE_BACKEND_MARKER = "doctolib"


def _lenient_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return parse_timestamp(value)


Timestamp = Annotated[Optional[datetime], BeforeValidator(_lenient_timestamp)]


# Live booking backend documents.


class VisitMotive(BaseModel):
    """An appointment type offered by a center."""

    id: int
    name: str


class Agenda(BaseModel):
    """A calendar resource and the motives it serves per practice."""

    id: int
    visit_motive_ids_by_practice_id: Dict[int, List[int]]


class BookingProfile(BaseModel):
    name_with_title: Optional[str] = None


class BookingData(BaseModel):
    visit_motives: List[VisitMotive]
    agendas: List[Agenda]
    profile: Optional[BookingProfile] = None


class BookingMetadata(BaseModel):
    """Booking page document for one center, fetched once per scan."""

    data: BookingData

    @classmethod
    def from_payload(cls, payload: Any) -> "BookingMetadata":
        """Validate a decoded JSON document, failing fast on missing fields."""
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise MalformedMetadata(f"Invalid booking metadata: {exc.error_count()} error(s)") from exc

    @property
    def display_name(self) -> Optional[str]:
        profile = self.data.profile
        return profile.name_with_title if profile else None


@dataclass(frozen=True)
class ResolvedIdentifierSet:
    """Agenda, practice and motive ids eligible for the searched appointment type."""

    agenda_ids: FrozenSet[int] = frozenset()
    practice_ids: FrozenSet[int] = frozenset()
    visit_motive_ids: FrozenSet[int] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not (self.agenda_ids and self.practice_ids and self.visit_motive_ids)

    @property
    def agenda_param(self) -> str:
        return _join_ids(self.agenda_ids)

    @property
    def practice_param(self) -> str:
        return _join_ids(self.practice_ids)

    @property
    def visit_motive_param(self) -> str:
        return _join_ids(self.visit_motive_ids)


def _join_ids(ids: FrozenSet[int]) -> str:
    return "-".join(str(value) for value in sorted(ids))


class VerificationOutcome(str, Enum):
    """Classification of a single claim attempt."""

    FREE = "free"
    TAKEN = "taken"
    PROBE_FAILED = "probe_failed"


@dataclass(frozen=True)
class ScanResult:
    """Verified-free slot count for one center."""

    url: str
    count: int
    failure: Optional[str] = None

    @classmethod
    def degraded(cls, url: str, failure: str) -> "ScanResult":
        return cls(url=url, count=0, failure=failure)


# Bulk feed documents.


class Location(BaseModel):
    longitude: float
    latitude: float
    city: Optional[str] = None
    cp: Optional[str] = None


class CenterMetadata(BaseModel):
    address: str = ""
    business_hours: Optional[Dict[str, Optional[str]]] = None
    phone_number: Optional[str] = None


class RequestCount(BaseModel):
    slots: Optional[int] = None


class AppointmentSchedule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    from_: Timestamp = Field(default=None, alias="from")
    to: Timestamp = None
    total: int = 0


class Center(BaseModel):
    """A vaccination center as published in a department snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    departement: str = ""
    nom: str
    url: str
    location: Optional[Location] = None
    metadata: CenterMetadata = Field(default_factory=CenterMetadata)
    prochain_rdv: Timestamp = None
    plateforme: Optional[str] = None
    center_type: str = Field(default="", alias="type")
    appointment_count: int = 0
    internal_id: Optional[str] = None
    vaccine_type: Optional[List[str]] = None
    appointment_by_phone_only: bool = False
    erreur: Optional[str] = None
    last_scan_with_availabilities: Timestamp = None
    request_counts: Optional[RequestCount] = None
    appointment_schedules: Optional[List[AppointmentSchedule]] = None
    gid: str = ""

    def _chronodose_schedule(self) -> Optional[AppointmentSchedule]:
        for schedule in self.appointment_schedules or []:
            if schedule.name == CHRONODOSE_SCHEDULE:
                return schedule
        return None

    def has_chronodose(self) -> bool:
        schedule = self._chronodose_schedule()
        return schedule is not None and schedule.total > 0

    def chronodose_total(self) -> int:
        schedule = self._chronodose_schedule()
        return schedule.total if schedule else 0

    def has_vaccine(self, pattern: str) -> bool:
        needle = pattern.lower()
        return any(needle in vaccine.lower() for vaccine in self.vaccine_type or [])

    def distance_km(self, latitude: float, longitude: float) -> float:
        """Distance from a reference point; a center without location is never near."""
        if self.location is None:
            return float("inf")
        return geo.distance_km(latitude, longitude, self.location.latitude, self.location.longitude)

    @property
    def is_live_verifiable(self) -> bool:
        return LIVE_BACKEND_MARKER in self.url


class CentersInDepartment(BaseModel):
    """One department snapshot file."""

    version: int = 0
    last_updated: str = ""
    last_scrap: List[str] = Field(default_factory=list)
    centres_disponibles: List[Center] = Field(default_factory=list)
    centres_indisponibles: List[Center] = Field(default_factory=list)


@dataclass(order=True)
class CenterInfo:
    """Ranked output row for one center."""

    distance: float
    n_slot: int
    date: str
    address: str
    url: str
