"""Esquemas Pydantic para validar entradas y el estado persistido.

Pydantic schemas to validate operator input and the persisted blobs. Wire
keys follow the camelCase layout of the stored election (``boothId``,
``accessibilityReady``...); snake_case names are accepted too.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .core.ledger import VoteLedger
from .core.models import (
    BoothStatus,
    Candidate,
    DeviceType,
    Election,
    ElectionStatus,
    LogCategory,
    LogLevel,
    NetworkType,
    Party,
    PartyCategory,
    PollingBooth,
    SecurityLog,
    VoteRecord,
)
from .errors import ValidationError

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _strip_required(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError("Field cannot be empty")
    return cleaned


class BoothSpec(_CamelModel):
    """Solicitud de registro de cabina.

    English: Booth registration request. ``id`` and ``location`` are required.
    """

    booth_id: str = Field(alias="id", min_length=1)
    location: str = Field(min_length=1)
    name: Optional[str] = None
    constituency: Optional[str] = None
    device_type: DeviceType = DeviceType.KIOSK
    network_type: NetworkType = NetworkType.WIFI
    accessibility_ready: bool = False

    @field_validator("booth_id", "location")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return _strip_required(value)


class CandidateSpec(_CamelModel):
    name: str = Field(min_length=1)
    party_id: str = Field(min_length=1)

    @field_validator("name", "party_id")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return _strip_required(value)


class ElectionDetailsSpec(_CamelModel):
    name: str = Field(min_length=1)
    election_type: str = Field(alias="type", min_length=1)

    @field_validator("name", "election_type")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return _strip_required(value)


class PartySchema(_CamelModel):
    party_id: str = Field(alias="id")
    name: str
    short_code: str = ""
    category: PartyCategory = PartyCategory.INDEPENDENT
    symbol: str = Field(default="", alias="symbolUrl")

    def to_model(self) -> Party:
        return Party(
            party_id=self.party_id,
            name=self.name,
            short_code=self.short_code,
            category=self.category,
            symbol=self.symbol,
        )


class CandidateSchema(_CamelModel):
    candidate_id: str = Field(alias="id")
    name: str
    party_id: str
    party_name: str = ""
    party_symbol: str = ""
    symbol: str = ""

    def to_model(self) -> Candidate:
        return Candidate(
            candidate_id=self.candidate_id,
            name=self.name,
            party_id=self.party_id,
            party_name=self.party_name,
            party_symbol=self.party_symbol,
            symbol=self.symbol,
        )


class BoothSchema(_CamelModel):
    booth_id: str = Field(alias="id")
    name: str = ""
    location: str = ""
    constituency: str = "General"
    status: BoothStatus = BoothStatus.ONLINE
    device_type: DeviceType = DeviceType.KIOSK
    accessibility_ready: bool = False
    network_type: NetworkType = NetworkType.WIFI
    battery_level: float = Field(default=100.0, ge=0, le=100)
    last_heartbeat: float = 0.0
    total_votes: int = Field(default=0, ge=0)
    auth_key: str = ""

    def to_model(self) -> PollingBooth:
        return PollingBooth(
            booth_id=self.booth_id,
            name=self.name or f"Booth {self.booth_id}",
            location=self.location,
            constituency=self.constituency,
            status=self.status,
            device_type=self.device_type,
            accessibility_ready=self.accessibility_ready,
            network_type=self.network_type,
            battery_level=self.battery_level,
            last_heartbeat=self.last_heartbeat,
            total_votes=self.total_votes,
            auth_key=self.auth_key,
        )


class SecurityLogSchema(_CamelModel):
    log_id: str = Field(alias="id")
    timestamp: float
    level: LogLevel
    category: LogCategory
    message: str
    booth_id: Optional[str] = None

    def to_model(self) -> SecurityLog:
        return SecurityLog(
            log_id=self.log_id,
            timestamp=self.timestamp,
            level=self.level,
            category=self.category,
            message=self.message,
            booth_id=self.booth_id,
        )


class ElectionSchema(_CamelModel):
    status: ElectionStatus = ElectionStatus.SETUP
    election_type: str = Field(default="", alias="type")
    name: str = ""
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    parties: List[PartySchema] = Field(default_factory=list)
    candidates: List[CandidateSchema] = Field(default_factory=list)
    booths: List[BoothSchema] = Field(default_factory=list)
    public_key: Optional[str] = None
    logs: List[SecurityLogSchema] = Field(default_factory=list)

    @field_validator("booths")
    @classmethod
    def unique_booth_ids(cls, value: List[BoothSchema]) -> List[BoothSchema]:
        ids = [booth.booth_id for booth in value]
        if len(ids) != len(set(ids)):
            raise ValueError("Booth ids must be unique")
        return value

    def to_model(self) -> Election:
        return Election(
            status=self.status,
            election_type=self.election_type,
            name=self.name,
            start_time=self.start_time,
            end_time=self.end_time,
            parties=tuple(party.to_model() for party in self.parties),
            candidates=tuple(candidate.to_model() for candidate in self.candidates),
            booths=tuple(booth.to_model() for booth in self.booths),
            public_key=self.public_key or "",
            logs=tuple(log.to_model() for log in self.logs),
        )


class VoteRecordSchema(_CamelModel):
    """Boleta persistida; cualquier campo extra se descarta.

    English: Persisted ballot; any extra field is dropped on load.
    """

    vote_id: str = Field(min_length=1)
    encrypted_data: str
    integrity_hash: str
    timestamp: float

    def to_model(self) -> VoteRecord:
        return VoteRecord(
            vote_id=self.vote_id,
            encrypted_data=self.encrypted_data,
            integrity_hash=self.integrity_hash,
            timestamp=self.timestamp,
        )


def _first_error_field(exc: PydanticValidationError) -> Optional[str]:
    errors = exc.errors()
    if not errors or not errors[0].get("loc"):
        return None
    return ".".join(str(part) for part in errors[0]["loc"])


def parse_spec(schema: type[BaseModel], data: Any) -> Any:
    """Valida una entrada del operador y traduce errores de pydantic.

    English:
        Validate operator input, translating pydantic errors into the domain
        ``ValidationError`` naming the offending field.
    """
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        field = _first_error_field(exc)
        first = exc.errors()[0]["msg"] if exc.errors() else str(exc)
        raise ValidationError(f"Invalid {field or 'input'}: {first}", field=field) from exc


def _migrate_election(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Migra claves heredadas. / Migrate legacy keys."""
    if "electionType" in payload and "type" not in payload:
        payload["type"] = payload.pop("electionType")
    for booth in payload.get("booths", []) or []:
        if isinstance(booth, dict) and "boothId" in booth and "id" not in booth:
            booth["id"] = booth.pop("boothId")
    return payload


def election_to_dict(election: Election) -> Dict[str, Any]:
    schema = ElectionSchema(
        status=election.status,
        election_type=election.election_type,
        name=election.name,
        start_time=election.start_time,
        end_time=election.end_time,
        parties=[
            PartySchema(
                party_id=party.party_id,
                name=party.name,
                short_code=party.short_code,
                category=party.category,
                symbol=party.symbol,
            )
            for party in election.parties
        ],
        candidates=[
            CandidateSchema(
                candidate_id=candidate.candidate_id,
                name=candidate.name,
                party_id=candidate.party_id,
                party_name=candidate.party_name,
                party_symbol=candidate.party_symbol,
                symbol=candidate.symbol,
            )
            for candidate in election.candidates
        ],
        booths=[BoothSchema.model_validate(_booth_fields(booth)) for booth in election.booths],
        public_key=election.public_key,
        logs=[
            SecurityLogSchema(
                log_id=log.log_id,
                timestamp=log.timestamp,
                level=log.level,
                category=log.category,
                message=log.message,
                booth_id=log.booth_id,
            )
            for log in election.logs
        ],
    )
    return schema.model_dump(mode="json", by_alias=True)


def _booth_fields(booth: PollingBooth) -> Dict[str, Any]:
    return {
        "booth_id": booth.booth_id,
        "name": booth.name,
        "location": booth.location,
        "constituency": booth.constituency,
        "status": booth.status,
        "device_type": booth.device_type,
        "accessibility_ready": booth.accessibility_ready,
        "network_type": booth.network_type,
        "battery_level": booth.battery_level,
        "last_heartbeat": booth.last_heartbeat,
        "total_votes": booth.total_votes,
        "auth_key": booth.auth_key,
    }


def election_from_dict(payload: Dict[str, Any]) -> Election:
    """Valida y reconstruye el agregado de elección.

    English: Validate and rebuild the election aggregate. Raises ``ValueError``.
    """
    if not isinstance(payload, dict):
        raise ValueError("Election payload must be an object")
    try:
        return ElectionSchema.model_validate(_migrate_election(dict(payload))).to_model()
    except PydanticValidationError as exc:
        raise ValueError(f"Invalid election payload: {exc}") from exc


def ledger_to_list(ledger: VoteLedger) -> List[Dict[str, Any]]:
    return [
        VoteRecordSchema(
            vote_id=record.vote_id,
            encrypted_data=record.encrypted_data,
            integrity_hash=record.integrity_hash,
            timestamp=record.timestamp,
        ).model_dump(mode="json", by_alias=True)
        for record in ledger
    ]


def ledger_from_list(payload: Any) -> VoteLedger:
    if not isinstance(payload, list):
        raise ValueError("Ledger payload must be a list")
    try:
        records = tuple(VoteRecordSchema.model_validate(item).to_model() for item in payload)
    except PydanticValidationError as exc:
        raise ValueError(f"Invalid ledger payload: {exc}") from exc
    return VoteLedger(records=records)
