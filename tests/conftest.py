"""Fixtures compartidas para las pruebas del núcleo electoral.

Shared fixtures for election core tests.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Optional

import pytest

from urna.core.crypto import derive_public_key
from urna.core.lifecycle import ElectionController
from urna.core.models import Election, Party, PartyCategory
from helpers import PRIVATE_KEY, REFERENCES, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def blank_election() -> Election:
    return Election(
        name="Test Election",
        election_type="Bye-Election",
        parties=(
            Party("p1", "Party One", "P1", PartyCategory.NATIONAL, "*"),
            Party("p2", "Party Two", "P2", PartyCategory.STATE, "#"),
        ),
        public_key=derive_public_key(PRIVATE_KEY),
    )


@pytest.fixture
def make_controller(blank_election: Election, clock: FakeClock) -> Callable[..., ElectionController]:
    def _make(election: Optional[Election] = None, **kwargs: Any) -> ElectionController:
        kwargs.setdefault("auto_telemetry", False)
        kwargs.setdefault("rng", random.Random(7))
        kwargs.setdefault("clock", clock)
        return ElectionController(
            election or blank_election,
            private_key=PRIVATE_KEY,
            authority_references=REFERENCES,
            **kwargs,
        )

    return _make

@pytest.fixture
def restore_root_logging():
    """Restaura handlers raíz tras ``setup_logging``. / Restore root handlers after ``setup_logging``."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
