"""Permission catalog persistence and the caller's effective permissions."""
