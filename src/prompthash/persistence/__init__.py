"""Persistence — append-only event log and JSON state snapshots."""

from prompthash.persistence.event_log import EventKind, EventLog, EventRecord
from prompthash.persistence.state_store import StateStore

__all__ = ["EventKind", "EventLog", "EventRecord", "StateStore"]
