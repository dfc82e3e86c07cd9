"""Controlador del ciclo de vida de la elección.

Dueño único del estado: toda mutación (comandos del operador, ticks de
telemetría, votos) pasa por ``_commit``, que aplica reductores en serie bajo un
``asyncio.Lock`` y persiste después de cada cambio.

English:
    Election lifecycle controller. It is the single owner of election state:
    operator commands, telemetry ticks and vote submissions all go through
    ``_commit``, which applies reducers serially under an ``asyncio.Lock`` and
    persists after every change. Commands return ``CommandResult`` values and
    never raise domain errors to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..config import UrnaSettings, load_seed_election
from ..errors import CommandResult, InvalidTransition, UrnaError, ValidationError
from ..schemas import BoothSpec, CandidateSpec, ElectionDetailsSpec, parse_spec
from ..storage import ElectionStore
from .crypto import build_vote_record, keypair_matches
from .ledger import VoteLedger
from .models import (
    BoothStatus,
    Candidate,
    Election,
    ElectionStatus,
    LogCategory,
    LogLevel,
    PollingBooth,
    SecurityLog,
    TallyResult,
    VoteRecord,
)
from .tally import AUTHORITY_IDS, AuthorityReferences, authority_valid, ensure_tally_allowed, tally_votes
from .telemetry import TelemetryConfig, TelemetryTask, simulate_tick

logger = logging.getLogger(__name__)

MIN_CANDIDATES = 2
VOTING_BOOTH_STATUSES = frozenset({BoothStatus.ONLINE, BoothStatus.OFFLINE})

_LOG_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.CRITICAL: logging.CRITICAL,
}

Reducer = Callable[[Election, VoteLedger], Tuple[Election, VoteLedger, Any]]


@dataclass(frozen=True)
class MonitorSummary:
    """Métricas en vivo para el panel del operador.

    English: Live metrics for the operator monitor.
    """

    status: ElectionStatus
    total_votes: int
    online_booths: int
    total_booths: int
    average_battery: float
    recent_logs: Tuple[SecurityLog, ...]


class ElectionController:
    """Máquina de estados SETUP -> ACTIVE -> CLOSED -> PUBLISHED.

    English:
        State machine SETUP -> ACTIVE -> CLOSED -> PUBLISHED coordinating the
        ledger, the booth set, telemetry and the tally protocol.
    """

    def __init__(
        self,
        election: Election,
        ledger: Optional[VoteLedger] = None,
        *,
        private_key: str,
        authority_references: AuthorityReferences,
        store: Optional[ElectionStore] = None,
        telemetry_config: Optional[TelemetryConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        encrypt_latency_seconds: float = 0.0,
        default_booth_id: Optional[str] = None,
        auto_telemetry: bool = True,
    ) -> None:
        self._election = election
        self._ledger = ledger or VoteLedger()
        self._private_key = private_key
        self._references = authority_references
        self._store = store
        self._telemetry_config = telemetry_config or TelemetryConfig()
        self._rng = rng or random.Random()
        self._clock = clock
        self._encrypt_latency_seconds = encrypt_latency_seconds
        self._default_booth_id = default_booth_id
        self._auto_telemetry = auto_telemetry
        self._authority_secrets: Dict[int, str] = {}
        self._telemetry: Optional[TelemetryTask] = None
        self._lock = asyncio.Lock()
        self._pending_save: Optional[Tuple[Election, VoteLedger, str]] = None
        self._writer: Optional["asyncio.Task[None]"] = None
        if election.public_key and not keypair_matches(election.public_key, private_key):
            logger.warning("election_key_mismatch public_key=%s", election.public_key)

    @classmethod
    def from_settings(cls, settings: UrnaSettings, *, rng: Optional[random.Random] = None, **kwargs: Any) -> "ElectionController":
        """Construye el controlador desde ``UrnaSettings`` y el almacén.

        English: Build a controller from settings, loading persisted state.
        """
        store = ElectionStore.at(settings.STORAGE_PATH)
        election, ledger = store.load(load_seed_election(settings))
        return cls(
            election,
            ledger,
            private_key=settings.PRIVATE_KEY,
            authority_references=settings.authority_references(),
            store=store,
            telemetry_config=settings.telemetry_config(),
            rng=rng,
            encrypt_latency_seconds=settings.ENCRYPT_LATENCY_SECONDS,
            default_booth_id=settings.DEFAULT_BOOTH_ID,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> Election:
        return self._election

    @property
    def ledger(self) -> VoteLedger:
        return self._ledger

    @property
    def telemetry_running(self) -> bool:
        return self._telemetry is not None and self._telemetry.running

    def booth_vote_counts(self) -> Dict[str, int]:
        """Conteo agregado por cabina, sin datos del votante.

        English: Aggregate vote count per booth, no voter data involved.
        """
        return {booth.booth_id: booth.total_votes for booth in self._election.booths}

    def monitor_summary(self, log_limit: int = 20) -> MonitorSummary:
        booths = self._election.booths
        average = sum(booth.battery_level for booth in booths) / len(booths) if booths else 0.0
        return MonitorSummary(
            status=self._election.status,
            total_votes=sum(booth.total_votes for booth in booths),
            online_booths=sum(1 for booth in booths if booth.status is BoothStatus.ONLINE),
            total_booths=len(booths),
            average_battery=average,
            recent_logs=self._election.logs[:log_limit],
        )

    def authority_status(self) -> Mapping[int, bool]:
        return {
            which: authority_valid(self._authority_secrets.get(which), self._references.reference_for(which))
            for which in AUTHORITY_IDS
        }

    # ------------------------------------------------------------------
    # Serialized update path
    # ------------------------------------------------------------------

    def _new_log(self, level: LogLevel, category: LogCategory, message: str, booth_id: Optional[str] = None) -> SecurityLog:
        return SecurityLog(
            log_id=str(uuid.uuid4()),
            timestamp=self._clock(),
            level=level,
            category=category,
            message=message,
            booth_id=booth_id,
        )

    async def _commit(self, reducer: Reducer, event: str) -> Any:
        async with self._lock:
            previous = self._election
            election, ledger, value = reducer(self._election, self._ledger)
            changed = election is not self._election or ledger is not self._ledger
            self._election = election
            self._ledger = ledger
        if changed:
            self._after_commit(previous, election, event)
        return value

    def _after_commit(self, previous: Election, current: Election, event: str) -> None:
        added = len(current.logs) - len(previous.logs)
        for entry in reversed(current.logs[:max(added, 0)]):
            logger.log(
                _LOG_LEVELS[entry.level],
                "security_log category=%s booth=%s message=%s",
                entry.category.value,
                entry.booth_id,
                entry.message,
            )
        if current.status is not previous.status:
            logger.info("election_transition from=%s to=%s", previous.status.value, current.status.value)
            if current.status is ElectionStatus.ACTIVE:
                self._start_telemetry()
            else:
                self._stop_telemetry()
        self._persist(event)

    def _persist(self, event: str) -> None:
        """Encola el último estado para el escritor en segundo plano.

        English:
            Queue the latest state for the background writer. Only the newest
            snapshot is kept; the disk write runs in a worker thread so the
            event loop never blocks on storage.
        """
        if self._store is None:
            return
        self._pending_save = (self._election, self._ledger, event)
        if self._writer is None or self._writer.done():
            self._writer = asyncio.get_running_loop().create_task(self._drain_saves())

    async def _drain_saves(self) -> None:
        while self._pending_save is not None:
            election, ledger, event = self._pending_save
            self._pending_save = None
            try:
                saved = await asyncio.to_thread(self._store.save, election, ledger)
            except Exception as exc:  # noqa: BLE001
                logger.error("election_persist_failed event=%s error=%s", event, exc)
                continue
            if not saved:
                logger.error("election_persist_failed event=%s", event)

    async def flush(self) -> None:
        """Espera a que el último estado quede escrito. / Wait until the latest state is written."""
        while self._writer is not None and not self._writer.done():
            await self._writer

    def _start_telemetry(self) -> None:
        if not self._auto_telemetry:
            return
        self._stop_telemetry()
        self._telemetry = TelemetryTask(self.tick, self._telemetry_config.interval_seconds)
        self._telemetry.start()

    def resume_telemetry(self) -> bool:
        """Reanuda la telemetría tras un reinicio con la elección ACTIVE.

        English: Resume telemetry after a restart that loaded an ACTIVE election.
        """
        if self._election.status is not ElectionStatus.ACTIVE or self.telemetry_running:
            return False
        self._start_telemetry()
        return self.telemetry_running

    def _stop_telemetry(self) -> None:
        if self._telemetry is not None:
            self._telemetry.cancel()

    async def shutdown(self) -> None:
        """Cancela la telemetría y vacía las escrituras pendientes.

        English: Cancel telemetry, wait for it, then flush pending saves.
        """
        if self._telemetry is not None:
            self._telemetry.cancel()
            await self._telemetry.wait_closed()
        await self.flush()

    async def _run(self, reducer: Reducer, event: str) -> CommandResult:
        try:
            value = await self._commit(reducer, event)
        except UrnaError as exc:
            logger.warning("command_rejected event=%s kind=%s reason=%s", event, exc.kind, exc.message)
            return CommandResult.failure(self._election, exc)
        return CommandResult.success(self._election, value)

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    async def tick(self) -> None:
        """Aplica un tick de telemetría si la elección sigue ACTIVE.

        English: Apply one telemetry tick; a no-op unless status is ACTIVE.
        """

        def reducer(election: Election, ledger: VoteLedger) -> Tuple[Election, VoteLedger, None]:
            if election.status is not ElectionStatus.ACTIVE:
                return election, ledger, None
            return simulate_tick(election, self._rng, self._clock(), self._telemetry_config), ledger, None

        await self._commit(reducer, "telemetry_tick")

    async def run_ticks(self, count: int) -> Election:
        for _ in range(count):
            await self.tick()
        return self._election

    # ------------------------------------------------------------------
    # Setup commands
    # ------------------------------------------------------------------

    @staticmethod
    def _require_setup(election: Election, action: str) -> None:
        if election.status is not ElectionStatus.SETUP:
            raise InvalidTransition(f"Cannot {action} while election is {election.status.value}; only allowed during SETUP.")

    async def update_election_details(self, name: str, election_type: str) -> CommandResult:
        def reducer(election: Election, ledger: VoteLedger):
            self._require_setup(election, "edit election details")
            details = parse_spec(ElectionDetailsSpec, {"name": name, "type": election_type})
            return replace(election, name=details.name, election_type=details.election_type), ledger, None

        return await self._run(reducer, "update_election_details")

    def _next_candidate_id(self, election: Election) -> str:
        base = f"c-{int(self._clock() * 1000)}"
        candidate_id = base
        suffix = 2
        while election.find_candidate(candidate_id) is not None:
            candidate_id = f"{base}-{suffix}"
            suffix += 1
        return candidate_id

    async def add_candidate(self, name: str, party_id: str) -> CommandResult:
        def reducer(election: Election, ledger: VoteLedger):
            self._require_setup(election, "add candidates")
            spec = parse_spec(CandidateSpec, {"name": name, "partyId": party_id})
            party = election.find_party(spec.party_id)
            if party is None:
                raise ValidationError(f"Unknown party: {spec.party_id}", field="partyId")
            candidate = Candidate(
                candidate_id=self._next_candidate_id(election),
                name=spec.name,
                party_id=party.party_id,
                party_name=party.name,
                party_symbol=party.symbol,
                symbol=party.symbol,
            )
            return replace(election, candidates=election.candidates + (candidate,)), ledger, candidate

        return await self._run(reducer, "add_candidate")

    async def remove_candidate(self, candidate_id: str) -> CommandResult:
        def reducer(election: Election, ledger: VoteLedger):
            self._require_setup(election, "remove candidates")
            if election.find_candidate(candidate_id) is None:
                raise ValidationError(f"Unknown candidate: {candidate_id}", field="candidateId")
            remaining = tuple(c for c in election.candidates if c.candidate_id != candidate_id)
            return replace(election, candidates=remaining), ledger, None

        return await self._run(reducer, "remove_candidate")

    async def register_booth(self, spec: Any) -> CommandResult:
        def reducer(election: Election, ledger: VoteLedger):
            self._require_setup(election, "register booths")
            booth_spec: BoothSpec = parse_spec(BoothSpec, spec)
            if election.find_booth(booth_spec.booth_id) is not None:
                raise ValidationError(f"Booth ID must be unique: {booth_spec.booth_id}", field="id")
            now = self._clock()
            booth = PollingBooth(
                booth_id=booth_spec.booth_id,
                name=booth_spec.name or f"Booth {booth_spec.booth_id}",
                location=booth_spec.location,
                constituency=booth_spec.constituency or "General",
                status=BoothStatus.ONLINE,
                device_type=booth_spec.device_type,
                accessibility_ready=booth_spec.accessibility_ready,
                network_type=booth_spec.network_type,
                battery_level=100.0,
                last_heartbeat=now,
                total_votes=0,
                auth_key=f"auth-{booth_spec.booth_id}-{int(now * 1000)}",
            )
            return replace(election, booths=election.booths + (booth,)), ledger, booth

        return await self._run(reducer, "register_booth")

    async def deregister_booth(self, booth_id: str) -> CommandResult:
        def reducer(election: Election, ledger: VoteLedger):
            self._require_setup(election, "deregister booths")
            if election.find_booth(booth_id) is None:
                raise ValidationError(f"Unknown booth: {booth_id}", field="id")
            remaining = tuple(b for b in election.booths if b.booth_id != booth_id)
            return replace(election, booths=remaining), ledger, None

        return await self._run(reducer, "deregister_booth")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start_election(self) -> CommandResult:
        def reducer(election: Election, ledger: VoteLedger):
            if election.status is not ElectionStatus.SETUP:
                raise InvalidTransition(f"Election can only be started from SETUP (current status: {election.status.value}).")
            problems = []
            unready = [booth.booth_id for booth in election.booths if not booth.accessibility_ready]
            if unready:
                problems.append(
                    "The following booths failed the Accessibility Readiness Check: "
                    f"{', '.join(unready)}. Mark them accessibility ready or deregister them."
                )
            if not keypair_matches(election.public_key, self._private_key):
                problems.append("The election public key does not pair with the configured private key.")
            if len(election.candidates) < MIN_CANDIDATES:
                problems.append(
                    f"Please add at least {MIN_CANDIDATES} candidates to the ballot "
                    f"(currently {len(election.candidates)})."
                )
            if problems:
                raise InvalidTransition("Cannot start election. " + " ".join(problems))
            entry = self._new_log(
                LogLevel.INFO,
                LogCategory.SYSTEM,
                "Election Status changed to ACTIVE. All booths unlocked.",
            )
            started = replace(
                election,
                status=ElectionStatus.ACTIVE,
                start_time=self._clock(),
                logs=(entry,) + election.logs,
            )
            return started, ledger, None

        return await self._run(reducer, "start_election")

    async def close_election(self) -> CommandResult:
        def reducer(election: Election, ledger: VoteLedger):
            if election.status is not ElectionStatus.ACTIVE:
                raise InvalidTransition(f"Only an ACTIVE election can be closed (current status: {election.status.value}).")
            entry = self._new_log(
                LogLevel.WARNING,
                LogCategory.SYSTEM,
                "Election Status changed to CLOSED. All booths locked.",
            )
            closed = replace(
                election,
                status=ElectionStatus.CLOSED,
                end_time=self._clock(),
                booths=tuple(replace(booth, status=BoothStatus.LOCKED) for booth in election.booths),
                logs=(entry,) + election.logs,
            )
            return closed, ledger, None

        return await self._run(reducer, "close_election")

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def _check_vote_allowed(self, election: Election, candidate_id: str, booth_id: Optional[str]) -> PollingBooth:
        if election.status is not ElectionStatus.ACTIVE:
            raise InvalidTransition(f"Votes are only accepted while the election is ACTIVE (current status: {election.status.value}).")
        if election.find_candidate(candidate_id) is None:
            raise ValidationError(f"Unknown candidate: {candidate_id}", field="candidateId")
        if not booth_id:
            raise ValidationError("No booth context for this submission.", field="boothId")
        booth = election.find_booth(booth_id)
        if booth is None:
            raise ValidationError(f"Unknown booth: {booth_id}", field="boothId")
        if booth.status not in VOTING_BOOTH_STATUSES:
            raise InvalidTransition(f"Booth {booth_id} is {booth.status.value} and cannot accept votes.")
        return booth

    async def submit_vote(self, candidate_id: str, booth_id: Optional[str] = None) -> CommandResult:
        """Cifra y registra un voto atribuido a la cabina de origen.

        El cifrado ocurre fuera del lock; solo el append se serializa.

        English:
            Encrypt and record a vote attributed to the originating booth.
            Encryption runs outside the lock so submissions proceed
            concurrently; only the ledger append is serialized.
        """
        booth_id = booth_id or self._default_booth_id
        try:
            self._check_vote_allowed(self._election, candidate_id, booth_id)
        except UrnaError as exc:
            logger.warning("vote_rejected kind=%s reason=%s", exc.kind, exc.message)
            return CommandResult.failure(self._election, exc)

        record = await build_vote_record(
            candidate_id,
            self._election.public_key,
            latency_seconds=self._encrypt_latency_seconds,
            timestamp=self._clock(),
        )

        def reducer(election: Election, ledger: VoteLedger) -> Tuple[Election, VoteLedger, VoteRecord]:
            booth = self._check_vote_allowed(election, candidate_id, booth_id)
            updated_ledger = ledger.append(record)
            booths = tuple(
                replace(b, total_votes=b.total_votes + 1) if b.booth_id == booth.booth_id else b
                for b in election.booths
            )
            return replace(election, booths=booths), updated_ledger, record

        return await self._run(reducer, "submit_vote")

    # ------------------------------------------------------------------
    # Tally
    # ------------------------------------------------------------------

    def set_authority_key(self, which: int, secret: str) -> CommandResult:
        """Registra el secreto de una autoridad (no persistido).

        English:
            Record an authority secret. Secrets are kept in memory only; the
            returned value reports whether this secret matches its reference.
        """
        if which not in AUTHORITY_IDS:
            return CommandResult.failure(
                self._election,
                ValidationError(f"Unknown authority: {which}. Expected one of {AUTHORITY_IDS}.", field="which"),
            )
        self._authority_secrets[which] = secret or ""
        return CommandResult.success(
            self._election,
            authority_valid(self._authority_secrets[which], self._references.reference_for(which)),
        )

    async def decrypt_and_tally(self) -> CommandResult:
        """Descifra el libro de votos tras la autorización 2-de-2.

        English:
            Decrypt the ledger after 2-of-2 authorization and publish. A
            second call after PUBLISHED is rejected rather than re-tallied.
        """

        def reducer(election: Election, ledger: VoteLedger) -> Tuple[Election, VoteLedger, Tuple[TallyResult, ...]]:
            ensure_tally_allowed(election.status, self._authority_secrets, self._references)
            if not keypair_matches(election.public_key, self._private_key):
                raise InvalidTransition(
                    "Cannot decrypt: the configured private key does not pair with the election "
                    "public key. Results were not published."
                )
            outcome = tally_votes(ledger, election.candidates, self._private_key)
            entry = self._new_log(
                LogLevel.INFO,
                LogCategory.VOTE,
                f"Votes decrypted successfully. Total verified: {outcome.verified} of {outcome.total}",
            )
            published = replace(election, status=ElectionStatus.PUBLISHED, logs=(entry,) + election.logs)
            return published, ledger, outcome.results

        return await self._run(reducer, "decrypt_and_tally")
