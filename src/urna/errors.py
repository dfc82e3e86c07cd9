"""Errores tipados del núcleo electoral y sobre de resultados de comandos.

English:
    Typed core errors and the command result envelope returned to the
    presentation layer. Commands never raise to callers; they return a
    ``CommandResult`` carrying either a snapshot or one of these errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from .core.models import Election

T = TypeVar("T")


class UrnaError(Exception):
    """Base de errores del dominio. / Base domain error."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidTransition(UrnaError):
    """Precondición de la máquina de estados no satisfecha.

    English: State machine precondition not met.
    """

    kind = "invalid_transition"


class ValidationError(UrnaError):
    """Entrada malformada o duplicada. / Malformed or duplicate input."""

    kind = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class DecryptionFailure(UrnaError):
    """Un registro no pudo descifrarse (no fatal, se excluye y se cuenta).

    English: A single record failed to decrypt; excluded and counted.
    """

    kind = "decryption_failure"


class NotAuthorized(UrnaError):
    """Escrutinio solicitado sin ambas autoridades válidas.

    English: Tally requested without both authority secrets valid.
    """

    kind = "not_authorized"


@dataclass(frozen=True)
class CommandResult(Generic[T]):
    """Resultado tipado de un comando.

    English:
        Typed command outcome. ``snapshot`` is the read-only election state
        after the command (unchanged on failure); ``value`` carries the
        command-specific payload such as a vote receipt or tally.
    """

    ok: bool
    snapshot: Election
    value: Optional[T] = None
    error: Optional[UrnaError] = None

    @classmethod
    def success(cls, snapshot: Election, value: Optional[T] = None) -> "CommandResult[T]":
        return cls(ok=True, snapshot=snapshot, value=value)

    @classmethod
    def failure(cls, snapshot: Election, error: UrnaError) -> "CommandResult[T]":
        return cls(ok=False, snapshot=snapshot, error=error)

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "status": self.snapshot.status.value,
            "error": None if self.error is None else {"kind": self.error.kind, "message": self.error.message},
        }
