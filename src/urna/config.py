"""Configuración validada de Urna y carga de la semilla electoral YAML.

English:
    Validated Urna settings (environment / .env) and the YAML election seed
    loader. The built-in seed reproduces the initial demo election.
"""

from __future__ import annotations

import copy
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.crypto import derive_public_key
from .core.models import Election
from .core.tally import AuthorityReferences
from .core.telemetry import TelemetryConfig
from .schemas import election_from_dict

logger = logging.getLogger(__name__)

_ENV_LOCAL_PATH = Path(".env.local")

ELECTION_TYPES = (
    "Lok Sabha General Election",
    "Rajya Sabha Election",
    "State Legislative Assembly (Vidhan Sabha)",
    "State Legislative Council (Vidhan Parishad)",
    "Municipal Corporation Election",
    "Gram Panchayat Election",
    "Zilla Parishad Election",
    "Bye-Election",
)

DEFAULT_SEED: Dict[str, Any] = {
    "status": "SETUP",
    "type": "Lok Sabha General Election",
    "name": "General Election 2024 - Phase 1",
    "parties": [
        {"id": "p1", "name": "Bharatiya Janata Party", "shortCode": "BJP", "category": "National Party", "symbolUrl": "🪷"},
        {"id": "p2", "name": "Indian National Congress", "shortCode": "INC", "category": "National Party", "symbolUrl": "✋"},
        {"id": "p3", "name": "Aam Aadmi Party", "shortCode": "AAP", "category": "National Party", "symbolUrl": "🧹"},
        {"id": "p4", "name": "Bahujan Samaj Party", "shortCode": "BSP", "category": "National Party", "symbolUrl": "🐘"},
        {"id": "p5", "name": "Communist Party of India (Marxist)", "shortCode": "CPI(M)", "category": "National Party", "symbolUrl": "🔨"},
        {"id": "p6", "name": "Telugu Desam Party", "shortCode": "TDP", "category": "State Party", "symbolUrl": "🚲"},
        {"id": "p7", "name": "YSR Congress Party", "shortCode": "YSRCP", "category": "State Party", "symbolUrl": "🏢"},
        {"id": "p8", "name": "All India Trinamool Congress", "shortCode": "TMC", "category": "State Party", "symbolUrl": "🌱"},
        {"id": "p9", "name": "Dravida Munnetra Kazhagam", "shortCode": "DMK", "category": "State Party", "symbolUrl": "☀️"},
        {"id": "ind", "name": "Independent", "shortCode": "IND", "category": "Independent", "symbolUrl": "👤"},
        {"id": "demo", "name": "Student Union", "shortCode": "SU", "category": "Institutional / Demo", "symbolUrl": "🎓"},
    ],
    "candidates": [
        {"id": "c1", "name": "Narendra Modi", "partyId": "p1", "partyName": "Bharatiya Janata Party", "symbol": "🪷"},
        {"id": "c2", "name": "Rahul Gandhi", "partyId": "p2", "partyName": "Indian National Congress", "symbol": "✋"},
        {"id": "c3", "name": "Arvind Kejriwal", "partyId": "p3", "partyName": "Aam Aadmi Party", "symbol": "🧹"},
        {"id": "c4", "name": "Mamata Banerjee", "partyId": "p8", "partyName": "All India Trinamool Congress", "symbol": "🌱"},
    ],
    "booths": [
        {
            "id": "K-101", "name": "Booth A", "location": "Main Hall A", "constituency": "New Delhi Central",
            "status": "ONLINE", "deviceType": "Kiosk", "accessibilityReady": True, "networkType": "Wi-Fi",
            "batteryLevel": 98, "totalVotes": 124, "authKey": "auth-101",
        },
        {
            "id": "K-102", "name": "Booth B", "location": "Main Hall B", "constituency": "New Delhi Central",
            "status": "ONLINE", "deviceType": "Kiosk", "accessibilityReady": True, "networkType": "LAN",
            "batteryLevel": 85, "totalVotes": 98, "authKey": "auth-102",
        },
        {
            "id": "K-201", "name": "Booth C", "location": "Annex Room", "constituency": "New Delhi South",
            "status": "ONLINE", "deviceType": "Tablet", "accessibilityReady": True, "networkType": "4G/5G",
            "batteryLevel": 45, "totalVotes": 12, "authKey": "auth-201",
        },
    ],
    "logs": [
        {"id": "l2", "offsetSeconds": -50, "level": "INFO", "category": "ACCESS", "message": "Admin logged in"},
        {"id": "l1", "offsetSeconds": -100, "level": "INFO", "category": "SYSTEM", "message": "System initialized"},
    ],
}


class UrnaSettings(BaseSettings):
    """Variables de entorno y archivo .env para Urna.

    English: Environment variables and .env file for Urna (prefix ``URNA_``).
    """

    model_config = SettingsConfigDict(
        env_prefix="URNA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    STORAGE_PATH: Path = Path("data")
    LOG_LEVEL: str = "INFO"
    SEED_CONFIG_PATH: Optional[Path] = None
    TICK_INTERVAL_SECONDS: float = Field(default=2.0, gt=0)
    ENCRYPT_LATENCY_SECONDS: float = Field(default=0.0, ge=0)
    OFFLINE_PROBABILITY: float = Field(default=0.005, ge=0, le=1)
    LOG_PROBABILITY: float = Field(default=0.01, ge=0, le=1)
    MAX_BATTERY_DRAIN: float = Field(default=0.05, ge=0)
    AUTHORITY_1_REFERENCE: str = "admin1"
    AUTHORITY_2_REFERENCE: str = "admin2"
    PRIVATE_KEY: str = "mock-private-key"
    DEFAULT_BOOTH_ID: Optional[str] = None

    def telemetry_config(self) -> TelemetryConfig:
        return TelemetryConfig(
            interval_seconds=self.TICK_INTERVAL_SECONDS,
            offline_probability=self.OFFLINE_PROBABILITY,
            log_probability=self.LOG_PROBABILITY,
            max_battery_drain=self.MAX_BATTERY_DRAIN,
        )

    def authority_references(self) -> AuthorityReferences:
        return AuthorityReferences(
            authority_1=self.AUTHORITY_1_REFERENCE,
            authority_2=self.AUTHORITY_2_REFERENCE,
        )

    def public_key(self) -> str:
        return derive_public_key(self.PRIVATE_KEY)


def load_settings(**overrides: Any) -> UrnaSettings:
    """Carga la configuración, fallando con detalle.

    English: Load settings, failing with details.
    """
    load_dotenv(_ENV_LOCAL_PATH, override=False)
    return UrnaSettings(**overrides)


def load_config(
    path: str | Path,
    *,
    defaults: Optional[Dict[str, Any]] = None,
    required: bool = False,
) -> Dict[str, Any]:
    """Carga un YAML y lo fusiona sobre ``defaults``.

    English:
        Load a YAML mapping and merge it over ``defaults``. Loaded values win.

    Raises:
        FileNotFoundError: When ``required=True`` and the file does not exist.
        ValueError: On YAML syntax errors or a non-mapping document.
    """
    defaults = defaults or {}
    resolved = Path(path)
    if not resolved.exists():
        if required:
            raise FileNotFoundError(f"Configuration file not found: {resolved}")
        logger.info("config_file_missing path=%s using_defaults=true", resolved)
        return copy.deepcopy(defaults)

    try:
        payload = yaml.safe_load(resolved.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"YAML syntax error in {resolved}: {exc}") from exc

    if payload is None:
        logger.warning("config_file_empty path=%s", resolved)
        return copy.deepcopy(defaults)
    if not isinstance(payload, dict):
        raise ValueError(f"Config file must be a YAML mapping: {resolved}")

    merged = {**copy.deepcopy(defaults), **payload}
    logger.info("config_loaded path=%s keys=%s", resolved, len(merged))
    return merged


def build_seed_election(
    seed: Dict[str, Any],
    *,
    public_key: str,
    now: Optional[float] = None,
) -> Election:
    """Construye la elección inicial a partir de la semilla.

    English:
        Build the initial election from a seed mapping. Booth heartbeats are
        stamped with ``now``; log ``offsetSeconds`` are relative to ``now``.
    """
    now = time.time() if now is None else now
    payload = copy.deepcopy(seed)
    for booth in payload.get("booths", []) or []:
        booth.setdefault("lastHeartbeat", now)
    logs = []
    for entry in payload.get("logs", []) or []:
        offset = float(entry.pop("offsetSeconds", 0))
        entry.setdefault("timestamp", now + offset)
        logs.append(entry)
    payload["logs"] = logs
    payload.setdefault("publicKey", public_key)
    if not payload.get("publicKey"):
        payload["publicKey"] = public_key
    return election_from_dict(payload)


def load_seed_election(settings: UrnaSettings, now: Optional[float] = None) -> Election:
    seed = DEFAULT_SEED
    if settings.SEED_CONFIG_PATH is not None:
        seed = load_config(settings.SEED_CONFIG_PATH, defaults=DEFAULT_SEED)
    return build_seed_election(seed, public_key=settings.public_key(), now=now)
