"""Pruebas del módulo de cifrado e integridad.

Tests for the crypto/integrity module.
"""

from __future__ import annotations

import asyncio
import string

import pytest

from urna.core.crypto import (
    build_vote_record,
    compute_integrity_hash,
    decrypt_vote,
    derive_public_key,
    encode_ballot,
    encrypt_vote,
    generate_keypair,
    key_fingerprint,
)

PRIVATE_KEY = "mock-private-key"
PUBLIC_KEY = derive_public_key(PRIVATE_KEY)


@pytest.mark.parametrize("candidate_id", ["c1", "c-1700000000000", "candidato-ñ", "🪷"])
def test_round_trip_with_paired_key(candidate_id: str) -> None:
    ballot = asyncio.run(encrypt_vote(candidate_id, PUBLIC_KEY))

    assert decrypt_vote(ballot.encrypted_data, PRIVATE_KEY) == candidate_id


def test_round_trip_with_generated_keypair() -> None:
    public_key, private_key = generate_keypair()
    ballot = asyncio.run(encrypt_vote("c2", public_key))

    assert decrypt_vote(ballot.encrypted_data, private_key) == "c2"


def test_wrong_private_key_returns_none() -> None:
    ballot = asyncio.run(encrypt_vote("c1", PUBLIC_KEY))

    assert decrypt_vote(ballot.encrypted_data, "some-other-key") is None
    assert decrypt_vote(ballot.encrypted_data, "") is None


@pytest.mark.parametrize(
    "payload",
    [
        "",
        "garbage",
        ".",
        f"@@@@.{key_fingerprint(PUBLIC_KEY)}",
        f"YWJj.{key_fingerprint(PUBLIC_KEY)}",
        f"ñandú.{key_fingerprint(PUBLIC_KEY)}",
    ],
)
def test_malformed_input_returns_none(payload: str) -> None:
    assert decrypt_vote(payload, PRIVATE_KEY) is None


def test_ciphertext_hides_candidate_id() -> None:
    ballot = asyncio.run(encrypt_vote("candidate-secret", PUBLIC_KEY))

    assert "candidate-secret" not in ballot.encrypted_data
    assert ballot.encrypted_data.endswith(f".{key_fingerprint(PUBLIC_KEY)}")


def test_encoding_is_deterministic_for_salt() -> None:
    assert encode_ballot("c1", PUBLIC_KEY, "abcd") == encode_ballot("c1", PUBLIC_KEY, "abcd")
    assert encode_ballot("c1", PUBLIC_KEY, "abcd") != encode_ballot("c1", PUBLIC_KEY, "efgh")


def test_same_candidate_ballots_are_unlinkable() -> None:
    first = asyncio.run(encrypt_vote("c1", PUBLIC_KEY))
    second = asyncio.run(encrypt_vote("c1", PUBLIC_KEY))

    assert first.encrypted_data != second.encrypted_data


def test_integrity_hash_shape_and_binding() -> None:
    digest = compute_integrity_hash("c1", 100.0)

    assert len(digest) == 64
    assert all(char in string.hexdigits for char in digest)
    assert digest == compute_integrity_hash("c1", 100.0)
    assert digest != compute_integrity_hash("c1", 101.0)
    assert digest != compute_integrity_hash("c2", 100.0)


def test_encrypt_vote_uses_given_timestamp() -> None:
    ballot = asyncio.run(encrypt_vote("c1", PUBLIC_KEY, timestamp=42.0))

    assert ballot.timestamp == 42.0
    assert ballot.integrity_hash == compute_integrity_hash("c1", 42.0)


def test_build_vote_record_generates_unique_ids() -> None:
    async def scenario():
        return await asyncio.gather(*(build_vote_record("c1", PUBLIC_KEY) for _ in range(10)))

    records = asyncio.run(scenario())

    assert len({record.vote_id for record in records}) == 10
