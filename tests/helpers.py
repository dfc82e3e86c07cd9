"""Utilidades compartidas por las pruebas. / Shared test helpers."""

from __future__ import annotations

from urna.core.lifecycle import ElectionController
from urna.core.tally import AuthorityReferences

PRIVATE_KEY = "test-private-key"
REFERENCES = AuthorityReferences(authority_1="admin1", authority_2="admin2")


class FakeClock:
    """Reloj controlable. / Controllable clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 1.0) -> None:
        self.now += seconds


async def ready_controller(controller: ElectionController, booth_id: str = "B1") -> tuple[str, str]:
    """Registra una cabina y dos candidatos; retorna los ids de candidatos.

    English: Register one booth and two candidates; return candidate ids.
    """
    await controller.register_booth({"id": booth_id, "location": "Hall 1", "accessibilityReady": True})
    first = await controller.add_candidate("A", "p1")
    second = await controller.add_candidate("B", "p2")
    return first.value.candidate_id, second.value.candidate_id


def authorize(controller: ElectionController) -> None:
    controller.set_authority_key(1, REFERENCES.authority_1)
    controller.set_authority_key(2, REFERENCES.authority_2)
