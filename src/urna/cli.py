# Cli Module
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

"""Interfaz de línea de comandos del operador.

English:
    Operator command line interface. Every command loads the persisted
    election, issues one controller command and prints the JSON outcome.
"""

from __future__ import annotations

import asyncio
import json
import random
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import typer

from .config import UrnaSettings, load_seed_election, load_settings
from .core.ledger import VoteLedger
from .core.lifecycle import ElectionController
from .core.models import Election
from .errors import CommandResult
from .logging import bind_context, setup_logging
from .storage import ELECTION_KEY, ElectionStore

app = typer.Typer(help="Urna Engine CLI")

_state: Dict[str, Any] = {}


def _settings() -> UrnaSettings:
    return _state["settings"]


def _controller(**kwargs: Any) -> ElectionController:
    kwargs.setdefault("auto_telemetry", False)
    controller = ElectionController.from_settings(_settings(), **kwargs)
    election = controller.snapshot
    bind_context(_state["log"], election_name=election.name, status=election.status.value).info(
        "cli_state_loaded", votes=len(controller.ledger)
    )
    return controller


def _execute(command: Callable[[ElectionController], Awaitable[Any]], **kwargs: Any) -> Any:
    """Ejecuta un comando y vacía las escrituras pendientes antes de salir.

    English: Run one controller command and flush pending saves before exit.
    """
    controller = _controller(**kwargs)

    async def _runner() -> Any:
        try:
            return await command(controller)
        finally:
            await controller.shutdown()

    return asyncio.run(_runner())


def _election_view(election: Election) -> Dict[str, Any]:
    return {
        "name": election.name,
        "type": election.election_type,
        "status": election.status.value,
        "startTime": election.start_time,
        "endTime": election.end_time,
        "candidates": [
            {"id": c.candidate_id, "name": c.name, "party": c.party_name} for c in election.candidates
        ],
        "booths": [
            {
                "id": b.booth_id,
                "status": b.status.value,
                "battery": round(b.battery_level, 2),
                "accessibilityReady": b.accessibility_ready,
                "totalVotes": b.total_votes,
            }
            for b in election.booths
        ],
    }


def _emit(result: CommandResult, value: Any = None) -> None:
    payload = result.to_dict()
    if value is not None:
        payload["value"] = value
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
    if not result.ok:
        raise typer.Exit(code=1)


@app.callback()
def main(
    storage: Optional[Path] = typer.Option(None, help="Directorio de estado / State directory."),
    log_level: Optional[str] = typer.Option(None, help="Nivel de log / Log level."),
) -> None:
    """Interfaz de línea de comandos de Urna.

    English: Urna command line interface.
    """
    overrides: Dict[str, Any] = {}
    if storage is not None:
        overrides["STORAGE_PATH"] = storage
    if log_level is not None:
        overrides["LOG_LEVEL"] = log_level
    settings = load_settings(**overrides)
    _state["log"] = setup_logging(
        settings.LOG_LEVEL,
        settings.STORAGE_PATH,
        sensitive_values=(settings.PRIVATE_KEY, settings.AUTHORITY_1_REFERENCE, settings.AUTHORITY_2_REFERENCE),
    )
    _state["settings"] = settings


@app.command()
def status() -> None:
    """Muestra el estado actual. / Show current state."""
    controller = _controller()
    summary = controller.monitor_summary()
    view = _election_view(controller.snapshot)
    view["votesInLedger"] = len(controller.ledger)
    view["onlineBooths"] = summary.online_booths
    view["averageBattery"] = round(summary.average_battery, 2)
    view["recentLogs"] = [
        {"level": log.level.value, "category": log.category.value, "message": log.message}
        for log in summary.recent_logs
    ]
    typer.echo(json.dumps(view, ensure_ascii=False, indent=2))


@app.command()
def start() -> None:
    """Abre la votación. / Open voting."""
    result = _execute(lambda controller: controller.start_election())
    _emit(result)


@app.command()
def close() -> None:
    """Cierra la votación y bloquea cabinas. / Close voting and lock booths."""
    result = _execute(lambda controller: controller.close_election())
    _emit(result)


@app.command("add-candidate")
def add_candidate(name: str, party_id: str) -> None:
    result = _execute(lambda controller: controller.add_candidate(name, party_id))
    _emit(result, result.value.candidate_id if result.ok else None)


@app.command("remove-candidate")
def remove_candidate(candidate_id: str) -> None:
    _emit(_execute(lambda controller: controller.remove_candidate(candidate_id)))


@app.command("register-booth")
def register_booth(
    booth_id: str,
    location: str,
    name: Optional[str] = typer.Option(None),
    constituency: Optional[str] = typer.Option(None),
    device_type: str = typer.Option("Kiosk"),
    network_type: str = typer.Option("Wi-Fi"),
    accessibility_ready: bool = typer.Option(True, "--accessibility-ready/--not-accessibility-ready"),
) -> None:
    spec = {
        "id": booth_id,
        "location": location,
        "name": name,
        "constituency": constituency,
        "deviceType": device_type,
        "networkType": network_type,
        "accessibilityReady": accessibility_ready,
    }
    _emit(_execute(lambda controller: controller.register_booth(spec)))


@app.command("deregister-booth")
def deregister_booth(booth_id: str) -> None:
    _emit(_execute(lambda controller: controller.deregister_booth(booth_id)))


@app.command()
def vote(candidate_id: str, booth: Optional[str] = typer.Option(None, help="Cabina de origen / Originating booth.")) -> None:
    """Emite un voto y muestra el recibo. / Cast a vote and print the receipt."""
    result = _execute(lambda controller: controller.submit_vote(candidate_id, booth_id=booth))
    receipt = None
    if result.ok:
        receipt = {"voteId": result.value.vote_id, "integrityHash": result.value.integrity_hash}
    _emit(result, receipt)


@app.command()
def tally(
    authority_1: str = typer.Option(..., prompt=True, hide_input=True),
    authority_2: str = typer.Option(..., prompt=True, hide_input=True),
) -> None:
    """Descifra y publica resultados. / Decrypt and publish results."""

    async def _tally(controller: ElectionController) -> CommandResult:
        controller.set_authority_key(1, authority_1)
        controller.set_authority_key(2, authority_2)
        return await controller.decrypt_and_tally()

    result = _execute(_tally)
    results = None
    if result.ok:
        results = [{"candidateId": r.candidate_id, "count": r.count} for r in result.value]
    _emit(result, results)


@app.command()
def monitor(ticks: int = typer.Option(1, min=1), seed: Optional[int] = typer.Option(None)) -> None:
    """Aplica N ticks de telemetría. / Apply N telemetry ticks."""
    election = _execute(lambda controller: controller.run_ticks(ticks), rng=random.Random(seed))
    typer.echo(json.dumps(_election_view(election), ensure_ascii=False, indent=2))


@app.command()
def watch(seconds: float = typer.Option(10.0, min=0.0)) -> None:
    """Deja correr la telemetría en vivo. / Let live telemetry run."""

    async def _watch() -> Election:
        controller = _controller(auto_telemetry=True)
        controller.resume_telemetry()
        await asyncio.sleep(seconds)
        await controller.shutdown()
        return controller.snapshot

    election = asyncio.run(_watch())
    typer.echo(json.dumps(_election_view(election), ensure_ascii=False, indent=2))


@app.command()
def init(force: bool = typer.Option(False, help="Sobrescribe el estado existente / Overwrite existing state.")) -> None:
    """Escribe la semilla electoral en el almacén. / Write the election seed to storage."""
    settings = _settings()
    store = ElectionStore.at(settings.STORAGE_PATH)
    if store.blobs.load(ELECTION_KEY) is not None and not force:
        typer.echo("State already exists; use --force to overwrite.")
        raise typer.Exit(code=1)
    election = load_seed_election(settings)
    store.save(election, VoteLedger())
    typer.echo(json.dumps(_election_view(election), ensure_ascii=False, indent=2))


@app.command()
def demo() -> None:
    """Ejecuta un ciclo completo en memoria. / Run a full in-memory election cycle."""
    settings = _settings()
    references = settings.authority_references()

    async def _demo() -> CommandResult:
        controller = ElectionController(
            Election(
                name="Demo Election",
                election_type="Bye-Election",
                parties=load_seed_election(settings).parties,
                public_key=settings.public_key(),
            ),
            private_key=settings.PRIVATE_KEY,
            authority_references=references,
            auto_telemetry=False,
        )
        await controller.register_booth({"id": "B1", "location": "Demo Hall", "accessibilityReady": True})
        first = await controller.add_candidate("Candidate A", "p1")
        second = await controller.add_candidate("Candidate B", "p2")
        await controller.start_election()
        for candidate in (first.value, first.value, second.value):
            await controller.submit_vote(candidate.candidate_id, booth_id="B1")
        await controller.close_election()
        controller.set_authority_key(1, references.authority_1)
        controller.set_authority_key(2, references.authority_2)
        return await controller.decrypt_and_tally()

    result = asyncio.run(_demo())
    results = [{"candidateId": r.candidate_id, "count": r.count} for r in result.value] if result.ok else None
    _emit(result, results)


if __name__ == "__main__":
    app()
