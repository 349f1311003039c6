"""Contract administration — single administrator and two-phase handoff."""

from prompthash.governance.admin import AdminGate

__all__ = ["AdminGate"]
