"""Pruebas del libro de votos append-only. / Append-only ledger tests."""

from __future__ import annotations

import pytest

from urna.core.ledger import VoteLedger
from urna.core.models import VoteRecord
from urna.errors import ValidationError


def _record(vote_id: str) -> VoteRecord:
    return VoteRecord(vote_id=vote_id, encrypted_data="x.y", integrity_hash="h", timestamp=1.0)


def test_append_returns_new_ledger() -> None:
    empty = VoteLedger()
    one = empty.append(_record("v1"))
    two = one.append(_record("v2"))

    assert len(empty) == 0
    assert len(one) == 1
    assert [record.vote_id for record in two] == ["v1", "v2"]


def test_duplicate_vote_id_rejected() -> None:
    ledger = VoteLedger().append(_record("v1"))

    with pytest.raises(ValidationError):
        ledger.append(_record("v1"))


def test_contains_receipt() -> None:
    ledger = VoteLedger().append(_record("v1"))

    assert ledger.contains("v1")
    assert not ledger.contains("v2")
