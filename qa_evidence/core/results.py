"""
Outcome of a user-facing state operation.

State components never raise for refusals the user can fix (missing fields,
unconfirmed discard, persistence failure). They return an OperationResult and
leave their state exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class OperationResult:
    ok: bool
    message: str = ""
    missing_fields: list[str] = field(default_factory=list)
    payload: Any = None

    @classmethod
    def success(cls, payload: Any = None, message: str = "") -> "OperationResult":
        return cls(ok=True, message=message, payload=payload)

    @classmethod
    def fail(cls, message: str, missing_fields: list[str] | None = None) -> "OperationResult":
        return cls(ok=False, message=message, missing_fields=list(missing_fields or []))

    def __bool__(self) -> bool:
        return self.ok

    def to_dict(self) -> dict:
        body = {"ok": self.ok, "message": self.message}
        if self.missing_fields:
            body["missing_fields"] = list(self.missing_fields)
        return body
