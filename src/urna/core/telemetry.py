"""Simulador de telemetría de cabinas y su tarea periódica cancelable.

English:
    Booth telemetry simulator. ``simulate_tick`` is a pure reducer over an
    election snapshot; ``TelemetryTask`` is the explicit, cancellable periodic
    task the lifecycle controller owns while the election is ACTIVE.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional

from .models import (
    STICKY_BOOTH_STATUSES,
    BoothStatus,
    Election,
    LogCategory,
    LogLevel,
    PollingBooth,
    SecurityLog,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetryConfig:
    """Parámetros de simulación. / Simulation tunables."""

    interval_seconds: float = 2.0
    offline_probability: float = 0.005
    log_probability: float = 0.01
    max_battery_drain: float = 0.05


def _tick_booth(booth: PollingBooth, rng: random.Random, now: float, config: TelemetryConfig) -> PollingBooth:
    if booth.status in STICKY_BOOTH_STATUSES:
        return booth
    is_offline = rng.random() < config.offline_probability
    drain = rng.random() * config.max_battery_drain
    return replace(
        booth,
        status=BoothStatus.OFFLINE if is_offline else BoothStatus.ONLINE,
        last_heartbeat=booth.last_heartbeat if is_offline else now,
        battery_level=max(0.0, booth.battery_level - drain),
    )


def simulate_tick(
    election: Election,
    rng: random.Random,
    now: float,
    config: Optional[TelemetryConfig] = None,
) -> Election:
    """Aplica un tick de telemetría y retorna un nuevo snapshot.

    Las cabinas LOCKED o MAINTENANCE no se tocan. La batería nunca sube ni
    baja de 0. Con probabilidad fija se agrega un aviso SECURITY sobre una
    cabina del conjunto actual; sin cabinas se omite ese paso.

    English:
        Apply one telemetry tick and return a new snapshot. LOCKED and
        MAINTENANCE booths are left untouched. Battery never rises and never
        drops below 0. With a fixed probability a SECURITY warning about a
        booth from the current set is prepended; with no booths that step is
        skipped.
    """
    config = config or TelemetryConfig()
    booths = tuple(_tick_booth(booth, rng, now, config) for booth in election.booths)
    logs = election.logs

    if rng.random() < config.log_probability:
        if booths:
            target = rng.choice(booths)
            entry = SecurityLog(
                log_id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
                timestamp=now,
                level=LogLevel.WARNING,
                category=LogCategory.SECURITY,
                message=f"Latency spike detected in {target.location or 'System'}",
                booth_id=target.booth_id,
            )
            logs = (entry,) + logs
        else:
            logger.debug("telemetry_log_skipped reason=no_booths")

    return replace(election, booths=booths, logs=logs)


class TelemetryTask:
    """Tarea periódica cancelable que dispara ticks de telemetría.

    ``cancel`` es síncrono: tras llamarlo ningún tick nuevo comienza, aunque
    uno ya en curso puede terminar.

    English:
        Cancellable periodic task that fires telemetry ticks. ``cancel`` is
        synchronous: once called no new tick starts, although one already in
        flight may complete.
    """

    def __init__(self, tick: Callable[[], Awaitable[None]], interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._tick = tick
        self._interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False
        self._in_tick = False
        self.ticks_run = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._cancel_requested

    def start(self) -> None:
        """Arranca el loop en el event loop actual. / Start on the running loop."""
        if self.running:
            return
        self._cancel_requested = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        self._cancel_requested = True
        # An in-flight tick is allowed to finish; the loop exits after it.
        if self._task is not None and not self._task.done() and not self._in_tick:
            self._task.cancel()

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while not self._cancel_requested:
            await asyncio.sleep(self._interval_seconds)
            if self._cancel_requested:
                break
            self._in_tick = True
            try:
                await self._tick()
            except Exception as exc:  # noqa: BLE001
                logger.error("telemetry_tick_failed error=%s", exc)
            finally:
                self._in_tick = False
            self.ticks_run += 1
