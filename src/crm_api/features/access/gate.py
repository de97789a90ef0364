"""Authorization gate: decide render, redirect, or denial for a protected view.

The gate is a small state machine driven by :meth:`AuthorizationGate.update`.
It never decides while permissions are loading, waits a short settle delay
once they arrive, and on denial either schedules a redirect or switches to a
denial page. At most one timer is pending at any time; every re-evaluation
cancels the previous one first.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from crm_api.common.logging import log_context
from crm_api.core.rbac.evaluator import PermissionChecker, PermissionInput, normalize_permission_set
from crm_api.core.rbac.routes import path_to_resource_action
from crm_api.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.05
DEFAULT_REDIRECT_DELAY = 0.2
DEFAULT_REDIRECT_TO = "/dashboard"

type Navigate = Callable[[str], Awaitable[Any] | Any]
type Notify = Callable[[str], Any]
type Reload = Callable[[], Any]


class GateState(str, Enum):
    LOADING = "loading"
    CHECKING = "checking"
    GRANTED = "granted"
    DENIED_REDIRECT = "denied_redirect"
    DENIED_PAGE = "denied_page"


@dataclass(frozen=True, slots=True)
class GateProps:
    """Inputs of a gate instance."""

    resource: str
    action: str = "read"
    redirect_to: str = DEFAULT_REDIRECT_TO
    show_toast: bool = False
    show_error_page: bool = True

    @classmethod
    def for_path(cls, path: str, **overrides: Any) -> GateProps:
        target = path_to_resource_action(path)
        return cls(resource=target.resource, action=target.action, **overrides)


@dataclass(frozen=True, slots=True)
class GateView:
    """What the gate renders for its current state."""

    kind: str
    content: Any = None
    message: str | None = None
    retry: Callable[[], None] | None = None


def denial_message(resource: str, action: str) -> str:
    return f"You don't have permission to {action} {resource}"


class AuthorizationGate:
    """Cooperative, single-timer gate bound to an asyncio event loop."""

    def __init__(
        self,
        props: GateProps,
        *,
        navigate: Navigate,
        notify: Notify | None = None,
        reload: Reload | None = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        redirect_delay: float = DEFAULT_REDIRECT_DELAY,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._props = props
        self._navigate = navigate
        self._notify = notify
        self._reload = reload
        self._settle_delay = settle_delay
        self._redirect_delay = redirect_delay
        self._loop = loop

        self._loading = True
        self._permissions: tuple = ()
        self._checker = PermissionChecker()
        self._state = GateState.LOADING
        self._timer: asyncio.TimerHandle | None = None
        self._generation = 0
        self._closed = False
        self._tasks: set[asyncio.Task[Any]] = set()

    @classmethod
    def from_settings(cls, settings: Settings, props: GateProps, **kwargs: Any) -> AuthorizationGate:
        if props.redirect_to == DEFAULT_REDIRECT_TO:
            props = replace(props, redirect_to=settings.gate_default_redirect)
        return cls(
            props,
            settle_delay=settings.gate_settle_delay_ms / 1000,
            redirect_delay=settings.gate_redirect_delay_ms / 1000,
            **kwargs,
        )

    # ------------- introspection -----------------

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def props(self) -> GateProps:
        return self._props

    @property
    def pending_timers(self) -> int:
        return 0 if self._timer is None or self._timer.cancelled() else 1

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------- inputs ------------------------

    def update(
        self,
        props: GateProps | None = None,
        *,
        permissions: Iterable[PermissionInput] | None = None,
        loading: bool | None = None,
        **changes: Any,
    ) -> GateState:
        """Feed new props and/or permission data into the gate.

        Re-evaluation happens only when ``resource``, ``action``,
        ``redirect_to``, the permission set, or the loading flag changed.
        """

        if self._closed:
            return self._state

        next_props = props or self._props
        if changes:
            next_props = replace(next_props, **changes)

        dirty = (
            (next_props.resource, next_props.action, next_props.redirect_to)
            != (self._props.resource, self._props.action, self._props.redirect_to)
        )
        self._props = next_props

        if permissions is not None:
            normalized = normalize_permission_set(permissions)
            if normalized != self._permissions:
                self._permissions = normalized
                self._checker.replace(normalized)
                dirty = True
            if loading is None:
                loading = False
        if loading is not None and loading != self._loading:
            self._loading = loading
            dirty = True

        if dirty or self._state == GateState.LOADING and not self._loading:
            self._evaluate()
        return self._state

    def retry(self) -> None:
        """Manual retry from the denial page: full reload, or a fresh check."""

        if self._closed:
            return
        if self._reload is not None:
            self._guard("gate.reload.failed", self._reload)
            return
        self._evaluate()

    def close(self) -> None:
        """Cancel any pending timer and stop reacting to updates. Idempotent."""

        self._cancel_timer()
        self._closed = True
        for task in list(self._tasks):
            task.cancel()

    # ------------- rendering ---------------------

    def render(self, children: Any = None) -> GateView:
        if self._state in (GateState.LOADING, GateState.CHECKING):
            return GateView(kind="loading", message="Checking permissions...")
        if self._state == GateState.GRANTED:
            return GateView(kind="children", content=children)
        if self._state == GateState.DENIED_PAGE:
            return GateView(
                kind="denied",
                message=denial_message(self._props.resource, self._props.action),
                retry=self.retry,
            )
        return GateView(kind="redirecting")

    # ------------- internals ---------------------

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self, delay: float, callback: Callable[[int], None]) -> None:
        self._cancel_timer()
        self._timer = self._get_loop().call_later(delay, callback, self._generation)

    def _evaluate(self) -> None:
        self._cancel_timer()
        self._generation += 1
        if self._loading:
            self._state = GateState.LOADING
            return
        self._state = GateState.CHECKING
        self._schedule(self._settle_delay, self._on_settled)

    def _on_settled(self, generation: int) -> None:
        if generation != self._generation or self._closed:
            return
        self._timer = None
        props = self._props
        if self._checker.has_permission(props.resource, props.action):
            self._state = GateState.GRANTED
            return

        logger.info(
            "gate.denied",
            extra=log_context(
                resource=props.resource,
                action=props.action,
                mode="page" if props.show_error_page else "redirect",
            ),
        )
        if props.show_toast and self._notify is not None:
            self._guard("gate.notify.failed", self._notify, denial_message(props.resource, props.action))

        if props.show_error_page:
            self._state = GateState.DENIED_PAGE
            return
        self._state = GateState.DENIED_REDIRECT
        self._schedule(self._redirect_delay, self._on_redirect)

    def _on_redirect(self, generation: int) -> None:
        if generation != self._generation or self._closed:
            return
        self._timer = None
        self._guard("gate.redirect.failed", self._navigate, self._props.redirect_to)

    def _guard(self, event: str, func: Callable[..., Any], *args: Any) -> None:
        """Run a UX side effect; failures are logged and swallowed."""

        try:
            outcome = func(*args)
        except Exception:
            logger.warning(event, exc_info=True, extra=log_context(resource=self._props.resource))
            return
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome, loop=self._get_loop())
            self._tasks.add(task)
            task.add_done_callback(lambda done: self._finish_task(event, done))

    def _finish_task(self, event: str, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)  # type: ignore[arg-type]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                event,
                exc_info=(type(exc), exc, exc.__traceback__),
                extra=log_context(resource=self._props.resource),
            )


__all__ = [
    "AuthorizationGate",
    "GateProps",
    "GateState",
    "GateView",
    "denial_message",
]
