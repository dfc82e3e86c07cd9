# Storage Module
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

"""Almacén clave/valor de blobs JSON para la elección y el libro de votos.

Key/value JSON blob store for the election and the vote ledger.
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional, Tuple

from .core.ledger import VoteLedger
from .core.models import Election
from .schemas import election_from_dict, election_to_dict, ledger_from_list, ledger_to_list

logger = logging.getLogger(__name__)

ELECTION_KEY = "election_config"
LEDGER_KEY = "secure_votes"


def write_atomic(path: Path, content: bytes) -> None:
    """Escritura atómica usando archivo temporal.

    English: Atomic write using a temporary file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=str(path.parent)) as tmp_file:
        tmp_file.write(content)
        temp_name = tmp_file.name
    shutil.move(temp_name, path)


class BlobStore:
    """Almacén de blobs JSON, un archivo por clave.

    English: JSON blob store, one file per key under ``base_path``.
    """

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path)

    def _path_for(self, key: str) -> Path:
        return self.base_path / f"{key}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self._path_for(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def save(self, key: str, value: Any) -> None:
        write_atomic(
            self._path_for(key),
            json.dumps(value, ensure_ascii=False, indent=2).encode("utf-8"),
        )


class ElectionStore:
    """Persistencia de la elección y el libro de votos sobre un ``BlobStore``.

    Los fallos de guardado se registran y no se propagan.

    English:
        Persists the election aggregate and the ledger through a
        ``BlobStore``. Save failures are logged, never raised.
    """

    def __init__(self, blobs: BlobStore) -> None:
        self.blobs = blobs

    @classmethod
    def at(cls, base_path: Path) -> "ElectionStore":
        return cls(BlobStore(base_path))

    def load(self, default: Election) -> Tuple[Election, VoteLedger]:
        """Carga el estado; ante blobs corruptos usa la semilla.

        English: Load state, falling back to ``default`` on corrupt blobs.
        """
        election = default
        ledger = VoteLedger()
        try:
            raw_election = self.blobs.load(ELECTION_KEY)
            if raw_election is not None:
                election = election_from_dict(raw_election)
        except (OSError, ValueError) as exc:
            logger.warning("storage_blob_corrupt key=%s error=%s", ELECTION_KEY, exc)
        try:
            raw_ledger = self.blobs.load(LEDGER_KEY)
            if raw_ledger is not None:
                ledger = ledger_from_list(raw_ledger)
        except (OSError, ValueError) as exc:
            logger.warning("storage_blob_corrupt key=%s error=%s", LEDGER_KEY, exc)
        logger.info(
            "storage_loaded status=%s booths=%s votes=%s",
            election.status.value,
            len(election.booths),
            len(ledger),
        )
        return election, ledger

    def save(self, election: Election, ledger: VoteLedger) -> bool:
        try:
            self.blobs.save(ELECTION_KEY, election_to_dict(election))
            self.blobs.save(LEDGER_KEY, ledger_to_list(ledger))
        except (OSError, TypeError, ValueError) as exc:
            logger.error("storage_save_failed path=%s error=%s", self.blobs.base_path, exc)
            return False
        return True
