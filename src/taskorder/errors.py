"""Exceptions raised by the ordering and scheduling engine."""

from __future__ import annotations


class EngineError(Exception):
    """Base exception for all taskorder errors."""

    kind = "engine"

    def __init__(self, message: str, ids: list[str] | None = None):
        super().__init__(message)
        self.ids = list(ids or [])

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": str(self), "ids": list(self.ids)}


class CycleError(EngineError):
    """Raised when the dependency graph contains a cycle.

    ``cycle`` is a closed walk such as ``["A", "B", "A"]``.
    """

    kind = "cycle"

    def __init__(self, cycle: list[str], message: str | None = None):
        self.cycle = list(cycle)
        if message is None:
            message = "Dependency cycle detected: " + " -> ".join(self.cycle)
        super().__init__(message, ids=self.cycle)


class InvalidReferenceError(EngineError):
    """Raised when an edge points at an unknown item or at its own dependent."""

    kind = "invalid_reference"

    def __init__(self, item_id: str, ref_id: str, message: str | None = None):
        self.item_id = item_id
        self.ref_id = ref_id
        if message is None:
            if item_id == ref_id:
                message = f"Item {item_id} cannot depend on itself"
            else:
                message = f"Item {item_id} references unknown item {ref_id}"
        super().__init__(message, ids=[item_id, ref_id])


class ConfigurationError(EngineError):
    """Raised when engine configuration is malformed."""

    kind = "configuration"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid {field}: {message}")

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["field"] = self.field
        return d
