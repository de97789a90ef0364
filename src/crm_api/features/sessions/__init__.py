"""Inactivity timeout and cross-tab session signalling."""

from .monitor import (
    ACTIVITY_EVENTS,
    LAST_ACTIVITY_KEY,
    LEGACY_KEYS,
    LOGIN_SIGNAL_KEY,
    LOGOUT_SIGNAL_KEY,
    SESSION_DATA_KEY,
    DelegatedSessionMonitor,
    SessionActivityMonitor,
    SessionSnapshot,
)
from .storage import EventTarget, SharedStorage, StorageView

__all__ = [
    "ACTIVITY_EVENTS",
    "LAST_ACTIVITY_KEY",
    "LEGACY_KEYS",
    "LOGIN_SIGNAL_KEY",
    "LOGOUT_SIGNAL_KEY",
    "SESSION_DATA_KEY",
    "DelegatedSessionMonitor",
    "EventTarget",
    "SessionActivityMonitor",
    "SessionSnapshot",
    "SharedStorage",
    "StorageView",
]
