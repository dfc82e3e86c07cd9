"""Cifrado de boletas y hashes de integridad.

El protocolo es un marcador de posición deliberadamente simple: conserva la
estructura (cifrar con clave pública, descifrar solo con la privada emparejada,
hash de evidencia de manipulación) sin pretender fuerza criptográfica.

English:
    Ballot encryption and integrity hashes. The protocol is an intentionally
    simple placeholder: it keeps the structure (encrypt with the public key,
    decrypt only with the paired private key, tamper-evidence hash) without
    claiming cryptographic strength.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from .models import VoteRecord

logger = logging.getLogger(__name__)

_KEYPAIR_DOMAIN = b"urna-keypair-v1"
_KEYSTREAM_DOMAIN = b"urna-keystream-v1"
_BALLOT_HASH_DOMAIN = b"urna-ballot-v1"
_FINGERPRINT_LENGTH = 16


@dataclass(frozen=True)
class EncryptedBallot:
    """Carga cifrada y hash de integridad. / Encrypted payload and integrity hash."""

    encrypted_data: str
    integrity_hash: str
    timestamp: float


def generate_vote_id() -> str:
    return str(uuid.uuid4())


def derive_public_key(private_key: str) -> str:
    """Deriva la clave pública emparejada con una clave privada.

    English: Derive the public key paired with a private key.
    """
    digest = hashlib.sha256(_KEYPAIR_DOMAIN + b"|" + private_key.encode("utf-8")).hexdigest()
    return f"pk-{digest[:32]}"


def generate_keypair() -> tuple[str, str]:
    """Genera un par (pública, privada). / Generate a (public, private) pair."""
    private_key = f"sk-{secrets.token_hex(16)}"
    return derive_public_key(private_key), private_key


def keypair_matches(public_key: str, private_key: str) -> bool:
    """Indica si ``public_key`` fue derivada de ``private_key``.

    English: Whether ``public_key`` pairs with ``private_key``.
    """
    if not public_key or not private_key:
        return False
    return hmac.compare_digest(derive_public_key(private_key).encode("utf-8"), public_key.encode("utf-8"))


def key_fingerprint(public_key: str) -> str:
    return hashlib.sha256(public_key.encode("utf-8")).hexdigest()[:_FINGERPRINT_LENGTH]


def _keystream(public_key: str, length: int) -> bytes:
    blocks = []
    counter = 0
    while sum(len(block) for block in blocks) < length:
        blocks.append(
            hashlib.sha256(
                _KEYSTREAM_DOMAIN + b"|" + str(counter).encode("utf-8") + b"|" + public_key.encode("utf-8")
            ).digest()
        )
        counter += 1
    return b"".join(blocks)[:length]


def _xor(data: bytes, stream: bytes) -> bytes:
    return bytes(left ^ right for left, right in zip(data, stream))


def compute_integrity_hash(candidate_id: str, timestamp: float) -> str:
    """Hash SHA-256 con separación de dominio sobre (candidato, timestamp).

    English:
        Domain-separated SHA-256 over ``(candidate_id, timestamp)``. It is
        informational only and never blocks the tally.
    """
    candidate_bytes = candidate_id.encode("utf-8")
    timestamp_bytes = repr(float(timestamp)).encode("utf-8")
    parts = [
        _BALLOT_HASH_DOMAIN,
        b"candidate",
        str(len(candidate_bytes)).encode("utf-8"),
        candidate_bytes,
        b"timestamp",
        str(len(timestamp_bytes)).encode("utf-8"),
        timestamp_bytes,
    ]
    return hashlib.sha256(b"|".join(parts)).hexdigest()


def encode_ballot(candidate_id: str, public_key: str, salt: str) -> str:
    """Codificación reversible y determinista dado ``salt``.

    English:
        Reversible encoding, deterministic for a given salt. The salt keeps
        two ballots for the same candidate from sharing a ciphertext.
    """
    payload = json.dumps({"candidateId": candidate_id, "salt": salt}, separators=(",", ":"))
    reversed_payload = payload[::-1].encode("utf-8")
    cipher = _xor(reversed_payload, _keystream(public_key, len(reversed_payload)))
    body = base64.urlsafe_b64encode(cipher).decode("ascii")
    return f"{body}.{key_fingerprint(public_key)}"


async def encrypt_vote(
    candidate_id: str,
    public_key: str,
    *,
    latency_seconds: float = 0.0,
    salt: Optional[str] = None,
    timestamp: Optional[float] = None,
) -> EncryptedBallot:
    """Cifra una boleta; ``latency_seconds`` modela la latencia del HSM.

    English:
        Encrypt a ballot. ``latency_seconds`` models network/HSM latency and is
        the only suspending step on the submission path.
    """
    if latency_seconds > 0:
        await asyncio.sleep(latency_seconds)
    cast_at = time.time() if timestamp is None else timestamp
    encrypted_data = encode_ballot(candidate_id, public_key, salt or secrets.token_hex(8))
    return EncryptedBallot(
        encrypted_data=encrypted_data,
        integrity_hash=compute_integrity_hash(candidate_id, cast_at),
        timestamp=cast_at,
    )


def decrypt_vote(encrypted_data: str, private_key: str) -> Optional[str]:
    """Invierte ``encrypt_vote``. Retorna ``None`` ante entrada malformada.

    English:
        Inverse of ``encrypt_vote``. Returns ``None`` (never raises) for
        malformed input, a key that does not pair with the ballot, or a
        payload without a candidate id.
    """
    if not private_key or not isinstance(encrypted_data, str):
        return None
    body, separator, fingerprint = encrypted_data.rpartition(".")
    if not separator or not body:
        return None
    public_key = derive_public_key(private_key)
    if fingerprint != key_fingerprint(public_key):
        logger.debug("ballot_key_mismatch fingerprint=%s", fingerprint)
        return None
    try:
        cipher = base64.urlsafe_b64decode(body.encode("ascii"))
        reversed_payload = _xor(cipher, _keystream(public_key, len(cipher))).decode("utf-8")
        parsed = json.loads(reversed_payload[::-1])
    except (binascii.Error, UnicodeError, ValueError) as exc:
        logger.debug("ballot_decrypt_failed error=%s", exc)
        return None
    if not isinstance(parsed, dict):
        return None
    candidate_id = parsed.get("candidateId")
    return candidate_id if isinstance(candidate_id, str) and candidate_id else None


async def build_vote_record(
    candidate_id: str,
    public_key: str,
    *,
    latency_seconds: float = 0.0,
    timestamp: Optional[float] = None,
) -> VoteRecord:
    """Construye un ``VoteRecord`` anónimo listo para el libro de votos.

    English: Build an anonymous ``VoteRecord`` ready for the ledger.
    """
    ballot = await encrypt_vote(
        candidate_id,
        public_key,
        latency_seconds=latency_seconds,
        timestamp=timestamp,
    )
    return VoteRecord(
        vote_id=generate_vote_id(),
        encrypted_data=ballot.encrypted_data,
        integrity_hash=ballot.integrity_hash,
        timestamp=ballot.timestamp,
    )
