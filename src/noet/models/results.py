"""Step result record shared by the DOM probe, the step library and the flows.

Steps never raise past their own call; failure is always a ``StepResult``
with ``success=False`` and a message naming the missing field or control.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class StepResult:
    """Outcome of one atomic browser interaction."""

    success: bool
    error: str = ""
    code: str = ""
    value: Any = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, value: Any = None, **details: Any) -> StepResult:
        return cls(success=True, value=value, details=details)

    @classmethod
    def fail(cls, error: str, *, code: str = "", **details: Any) -> StepResult:
        return cls(success=False, error=error, code=code, details=details)

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the ``{success, error?, ...extra}`` shape."""
        out: dict[str, Any] = {"success": self.success}
        if self.error:
            out["error"] = self.error
        out.update(self.details)
        return out
