# Models Module
# AUTO-DOC-INDEX
#
# ES: Índice rápido
#   1) Propósito del módulo
#   2) Componentes principales
#   3) Puntos de extensión
#
# EN: Quick index
#   1) Module purpose
#   2) Main components
#   3) Extension points
#
# Secciones / Sections:
#   - Configuración / Configuration
#   - Lógica principal / Core logic
#   - Integraciones / Integrations

"""Modelos inmutables del agregado de elección y del libro de votos.

English:
    Immutable models for the election aggregate and the vote ledger. Every
    mutation produces a new value through ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class ElectionStatus(str, Enum):
    """Estados del ciclo de vida. / Lifecycle states."""

    SETUP = "SETUP"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    PUBLISHED = "PUBLISHED"


class BoothStatus(str, Enum):
    """Estados de una cabina de votación. / Polling booth states."""

    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    MAINTENANCE = "MAINTENANCE"
    LOCKED = "LOCKED"
    TAMPERED = "TAMPERED"


# Telemetry never overwrites these.
STICKY_BOOTH_STATUSES = frozenset({BoothStatus.LOCKED, BoothStatus.MAINTENANCE})


class LogLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class LogCategory(str, Enum):
    ACCESS = "ACCESS"
    VOTE = "VOTE"
    SYSTEM = "SYSTEM"
    SECURITY = "SECURITY"


class PartyCategory(str, Enum):
    NATIONAL = "National Party"
    STATE = "State Party"
    INDEPENDENT = "Independent"
    INSTITUTIONAL = "Institutional / Demo"


class DeviceType(str, Enum):
    KIOSK = "Kiosk"
    TABLET = "Tablet"
    TERMINAL = "Terminal"


class NetworkType(str, Enum):
    LAN = "LAN"
    WIFI = "Wi-Fi"
    CELLULAR = "4G/5G"


@dataclass(frozen=True)
class Party:
    """Partido registrado.

    Attributes:
        party_id (str): Identificador único.
        name (str): Nombre visible.
        short_code (str): Sigla.
        category (PartyCategory): Categoría del partido.
        symbol (str): Símbolo (emoji o URL).

    English:
        Registered party. The registry is fixed for the election.
    """

    party_id: str
    name: str
    short_code: str
    category: PartyCategory
    symbol: str


@dataclass(frozen=True)
class Candidate:
    """Candidato en la papeleta.

    ``party_name`` y ``party_symbol`` se copian al insertar y no se
    resincronizan si el partido cambia.

    English:
        Ballot candidate. Party name and symbol are copied at insertion time
        and are never re-synced afterwards.
    """

    candidate_id: str
    name: str
    party_id: str
    party_name: str
    party_symbol: str
    symbol: str


@dataclass(frozen=True)
class PollingBooth:
    """Dispositivo de votación y su telemetría.

    English:
        One polling device together with its telemetry fields.
    """

    booth_id: str
    name: str
    location: str
    constituency: str
    status: BoothStatus
    device_type: DeviceType
    accessibility_ready: bool
    network_type: NetworkType
    battery_level: float
    last_heartbeat: float
    total_votes: int
    auth_key: str


@dataclass(frozen=True)
class SecurityLog:
    """Entrada de auditoría (append-only). / Append-only audit entry."""

    log_id: str
    timestamp: float
    level: LogLevel
    category: LogCategory
    message: str
    booth_id: Optional[str] = None


@dataclass(frozen=True)
class VoteRecord:
    """Boleta anonimizada y cifrada.

    No existe ningún campo que identifique al votante: el anonimato es
    estructural.

    English:
        Anonymized, encrypted ballot. There is no voter-identifying field.
    """

    vote_id: str
    encrypted_data: str
    integrity_hash: str
    timestamp: float


@dataclass(frozen=True)
class TallyResult:
    candidate_id: str
    count: int


@dataclass(frozen=True)
class Election:
    """Agregado raíz de la elección (singleton por proceso).

    Attributes:
        status (ElectionStatus): Estado del ciclo de vida.
        election_type (str): Tipo de elección (texto libre).
        name (str): Nombre de la elección.
        start_time (Optional[float]): Se fija al entrar en ACTIVE.
        end_time (Optional[float]): Se fija al entrar en CLOSED.
        parties (Tuple[Party, ...]): Registro de partidos.
        candidates (Tuple[Candidate, ...]): Papeleta ordenada.
        booths (Tuple[PollingBooth, ...]): Cabinas registradas.
        public_key (str): Clave pública para cifrar boletas.
        logs (Tuple[SecurityLog, ...]): Bitácora, más reciente primero.

    English:
        Election aggregate root. ``logs`` is newest-first and never truncated.
    """

    status: ElectionStatus = ElectionStatus.SETUP
    election_type: str = ""
    name: str = ""
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    parties: Tuple[Party, ...] = field(default_factory=tuple)
    candidates: Tuple[Candidate, ...] = field(default_factory=tuple)
    booths: Tuple[PollingBooth, ...] = field(default_factory=tuple)
    public_key: str = ""
    logs: Tuple[SecurityLog, ...] = field(default_factory=tuple)

    def find_booth(self, booth_id: str) -> Optional[PollingBooth]:
        return next((booth for booth in self.booths if booth.booth_id == booth_id), None)

    def find_party(self, party_id: str) -> Optional[Party]:
        return next((party for party in self.parties if party.party_id == party_id), None)

    def find_candidate(self, candidate_id: str) -> Optional[Candidate]:
        return next(
            (candidate for candidate in self.candidates if candidate.candidate_id == candidate_id),
            None,
        )
