"""Protocolo de escrutinio con autorización de dos autoridades (2-de-2).

English:
    Two-authority (2-of-2) tally protocol. Authority validity is expressed as
    pure predicates evaluated by the tally command; there are no persistent
    "is valid" flags.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

from ..errors import DecryptionFailure, InvalidTransition, NotAuthorized
from .crypto import decrypt_vote
from .ledger import VoteLedger
from .models import Candidate, ElectionStatus, TallyResult

logger = logging.getLogger(__name__)

AUTHORITY_IDS = (1, 2)


@dataclass(frozen=True)
class AuthorityReferences:
    """Valores de referencia de cada autoridad. / Reference secret per authority."""

    authority_1: str
    authority_2: str

    def reference_for(self, which: int) -> str:
        if which == 1:
            return self.authority_1
        if which == 2:
            return self.authority_2
        raise ValueError(f"unknown authority: {which}")


@dataclass(frozen=True)
class TallyOutcome:
    """Resultado del escrutinio y contadores de auditoría.

    English:
        Tally result plus audit counters. ``failures`` lists one
        ``DecryptionFailure`` per excluded record.
    """

    results: Tuple[TallyResult, ...]
    verified: int
    total: int
    failures: Tuple[DecryptionFailure, ...] = ()

    @property
    def excluded(self) -> int:
        return self.total - self.verified

    def as_mapping(self) -> Dict[str, int]:
        return {result.candidate_id: result.count for result in self.results}


def authority_valid(secret: Optional[str], reference: str) -> bool:
    """Compara un secreto suministrado contra su referencia.

    English: Compare a supplied secret against its reference value.
    """
    if not secret or not reference:
        return False
    return hmac.compare_digest(secret.encode("utf-8"), reference.encode("utf-8"))


def authorities_valid(supplied: Dict[int, str], references: AuthorityReferences) -> bool:
    return all(authority_valid(supplied.get(which), references.reference_for(which)) for which in AUTHORITY_IDS)


def ensure_tally_allowed(
    status: ElectionStatus,
    supplied: Dict[int, str],
    references: AuthorityReferences,
) -> None:
    """Valida el estado y ambas autoridades antes de descifrar.

    English:
        Check lifecycle status and both authorities before decrypting.
        Raises ``InvalidTransition`` or ``NotAuthorized``.
    """
    if status is ElectionStatus.PUBLISHED:
        raise InvalidTransition("Results are already published; re-tally is not permitted.")
    if status is not ElectionStatus.CLOSED:
        raise InvalidTransition(f"Election must be CLOSED to decrypt results (current status: {status.value}).")
    missing = [
        str(which)
        for which in AUTHORITY_IDS
        if not authority_valid(supplied.get(which), references.reference_for(which))
    ]
    if missing:
        raise NotAuthorized(f"Authority key(s) missing or invalid: {', '.join(missing)}. Both authorities must authorize decryption.")


def tally_votes(
    ledger: VoteLedger,
    candidates: Iterable[Candidate],
    private_key: str,
    *,
    decrypt: Callable[[str, str], Optional[str]] = decrypt_vote,
) -> TallyOutcome:
    """Descifra cada boleta y agrega por candidato.

    Las boletas que no descifran o apuntan a un candidato desconocido se
    excluyen y se cuentan. Todos los candidatos aparecen, incluso con 0.

    English:
        Decrypt every ballot and aggregate per candidate. Records that fail to
        decrypt or name an unknown candidate are excluded and counted. Every
        known candidate appears in the result, including zero counts.
    """
    counts: Dict[str, int] = {candidate.candidate_id: 0 for candidate in candidates}
    failures = []
    verified = 0
    for record in ledger:
        candidate_id = decrypt(record.encrypted_data, private_key)
        if candidate_id is None:
            failures.append(DecryptionFailure(f"Vote {record.vote_id} failed to decrypt"))
            continue
        if candidate_id not in counts:
            failures.append(DecryptionFailure(f"Vote {record.vote_id} references an unknown candidate"))
            continue
        counts[candidate_id] += 1
        verified += 1

    if failures:
        logger.warning("tally_records_excluded excluded=%s total=%s", len(failures), len(ledger))
    return TallyOutcome(
        results=tuple(TallyResult(candidate_id=cid, count=count) for cid, count in counts.items()),
        verified=verified,
        total=len(ledger),
        failures=tuple(failures),
    )
