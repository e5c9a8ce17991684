from __future__ import annotations

from typing import Iterable, List, Optional


class PlanningError(Exception):
    """Base class for errors raised by the load planning engine."""


class PlanningInputError(PlanningError, ValueError):
    """Malformed or missing item/container fields; raised before any packing."""

    def __init__(self, message: str, errors: Optional[Iterable[str]] = None) -> None:
        self.errors: List[str] = list(errors) if errors else [message]
        super().__init__(message)

    def __str__(self) -> str:
        if len(self.errors) <= 1:
            return super().__str__()
        return super().__str__() + "\n" + "\n".join(f"  - {e}" for e in self.errors)
