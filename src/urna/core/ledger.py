"""Libro de votos append-only.

English:
    Append-only vote ledger. The ledger is an immutable value: ``append``
    returns a new ledger and prior records are never updated or removed. It is
    a sibling of the election aggregate, never embedded in it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Tuple

from ..errors import ValidationError
from .models import VoteRecord


@dataclass(frozen=True)
class VoteLedger:
    records: Tuple[VoteRecord, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[VoteRecord]:
        return iter(self.records)

    def append(self, record: VoteRecord) -> "VoteLedger":
        """Agrega una boleta; rechaza ``vote_id`` repetidos.

        English: Append a ballot, rejecting a repeated ``vote_id``.
        """
        if any(existing.vote_id == record.vote_id for existing in self.records):
            raise ValidationError(f"duplicate vote_id: {record.vote_id}", field="vote_id")
        return VoteLedger(records=self.records + (record,))

    def contains(self, vote_id: str) -> bool:
        """Verifica un recibo sin revelar contenido. / Check a receipt id."""
        return any(record.vote_id == vote_id for record in self.records)
