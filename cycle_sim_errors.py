# cycle_sim_errors.py
from __future__ import annotations
from typing import List, Optional, Tuple


class SimulationError(Exception):
    """Base class for every error the cycle simulation raises on purpose."""


class ScenarioValidationError(SimulationError, ValueError):
    """Scenario or run options failed the pre-run checks.

    ``issues`` holds one ``(field, reason)`` pair per violated field so a UI can
    point at each offending input.
    """

    def __init__(self, issues: List[Tuple[str, str]]):
        self.issues = list(issues)
        lines = [f"{fld}: {reason}" for fld, reason in self.issues]
        super().__init__("Invalid scenario:\n  " + "\n  ".join(lines))

    @property
    def fields(self) -> List[str]:
        return [fld for fld, _ in self.issues]


class ScenarioAdapterError(SimulationError, ValueError):
    """An external scenario payload could not be mapped onto a Scenario."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class SimulationDeadlockError(SimulationError, RuntimeError):
    """A structurally valid run made no progress over at least one day."""

    def __init__(self, message: str, kpis: Optional[object] = None):
        super().__init__(message)
        self.kpis = kpis
