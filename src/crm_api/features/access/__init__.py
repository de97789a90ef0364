"""Route-level authorization gate."""

from .gate import AuthorizationGate, GateProps, GateState, GateView

__all__ = ["AuthorizationGate", "GateProps", "GateState", "GateView"]
