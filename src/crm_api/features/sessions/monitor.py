"""Inactivity timeout and cross-tab login/logout signalling.

Two monitors share one activity-tracking core:

* :class:`SessionActivityMonitor` keeps its state in shared storage so every
  tab of the origin sees the same last-activity timestamp and reacts to the
  login/logout signal keys written by other tabs.
* :class:`DelegatedSessionMonitor` keeps the timestamp in memory and defers
  session validity to an external session provider.

Both attach passive listeners for :data:`ACTIVITY_EVENTS`, run a periodic
expiry check as an asyncio task, and release everything through one
idempotent :meth:`dispose` call.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from crm_api.common.logging import log_context
from crm_api.common.schema import BaseSchema
from crm_api.common.time import now_ms
from crm_api.core.errors import SessionExpiredError
from crm_api.settings import Settings

from .storage import ActivityEvent, EventTarget, StorageEvent, StorageView

logger = logging.getLogger(__name__)

SESSION_DATA_KEY = "app_session_data"
LAST_ACTIVITY_KEY = "app_last_activity"
LOGOUT_SIGNAL_KEY = "app_logout_signal"
LOGIN_SIGNAL_KEY = "app_login_signal"

LEGACY_KEYS: tuple[str, ...] = (
    "logged_in_user",
    "user_permissions",
    "user_role",
    "user_department",
    "lastActivity",
    "app_activity_log",
    "sessionWarning",
    "force_logout",
)

ACTIVITY_EVENTS: tuple[str, ...] = (
    "mousedown",
    "mousemove",
    "keypress",
    "scroll",
    "touchstart",
    "click",
    "focus",
    "keydown",
)

SESSION_TIMEOUT_MS = 60 * 60 * 1000
WARNING_WINDOW_MS = 5 * 60 * 1000
CHECK_INTERVAL_SECONDS = 30.0
DELEGATED_CHECK_INTERVAL_SECONDS = 60.0
DEFAULT_LOGIN_PATH = "/auth/login"

type Clock = Callable[[], int]
type SignOut = Callable[[str], Awaitable[Any] | Any]
type Redirect = Callable[[str], Any]
type SessionLookup = Callable[[], Awaitable[Any] | Any]
type Callback = Callable[[], Any]
type ExpiredCallback = Callable[[SessionExpiredError], Any]


class SessionSnapshot(BaseSchema):
    """Tab-shared description of the signed-in user."""

    user_id: str
    email: str = ""
    name: str = ""
    role: str = ""
    avatar: str | None = None
    last_activity: int = 0
    session_start: int = 0


@dataclass(slots=True)
class CrossTabCallbacks:
    on_login: Callback | None = None
    on_logout: Callback | None = None
    on_session_expired: ExpiredCallback | None = None


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class _ActivityTracker(ABC):
    """Shared listener, interval, cross-tab and sign-out plumbing.

    Without a ``storage`` view the login/logout signals are not written and
    other tabs are not heard from.
    """

    interval_event = "session.check"

    def __init__(
        self,
        document: EventTarget,
        *,
        timeout_ms: int,
        warning_window_ms: int,
        check_interval: float,
        clock: Clock,
        sign_out: SignOut | None,
        redirect: Redirect | None,
        login_path: str,
        storage: StorageView | None = None,
    ) -> None:
        self._document = document
        self._storage = storage
        self.timeout_ms = timeout_ms
        self.warning_window_ms = warning_window_ms
        self.check_interval = check_interval
        self._clock = clock
        self._sign_out = sign_out
        self._redirect = redirect
        self.login_path = login_path
        self._listening = False
        self._interval_task: asyncio.Task[None] | None = None
        self._disposed = False
        self._callbacks = CrossTabCallbacks()
        self._subscribed = False

    # ------------- activity --------------------------------------------

    @abstractmethod
    def record_activity(self) -> None: ...

    @abstractmethod
    def last_activity(self) -> int | None: ...

    def _on_activity(self, _event: ActivityEvent) -> None:
        self.record_activity()

    def start_activity_monitoring(self) -> None:
        self.stop_activity_monitoring()
        for event_type in ACTIVITY_EVENTS:
            self._document.add_event_listener(event_type, self._on_activity, passive=True)
        self._listening = True

    def stop_activity_monitoring(self) -> None:
        for event_type in ACTIVITY_EVENTS:
            self._document.remove_event_listener(event_type, self._on_activity)
        self._listening = False

    @property
    def listening(self) -> bool:
        return self._listening

    # ------------- expiry ----------------------------------------------

    def is_expired(self) -> bool:
        last = self.last_activity()
        if last is None:
            return True
        return self._clock() - last > self.timeout_ms

    def time_until_expiry(self) -> int:
        """Milliseconds left before the inactivity timeout; ``0`` when unknown."""

        last = self.last_activity()
        if last is None:
            return 0
        return max(0, self.timeout_ms - (self._clock() - last))

    def minutes_until_expiry(self) -> int:
        return self.time_until_expiry() // 60_000

    def is_expiring_soon(self) -> bool:
        last = self.last_activity()
        if last is None:
            return True
        return self._clock() - last > self.timeout_ms - self.warning_window_ms

    def ensure_active(self) -> None:
        if self.is_expired():
            raise SessionExpiredError("timeout")

    # ------------- interval --------------------------------------------

    @property
    def checking(self) -> bool:
        return self._interval_task is not None and not self._interval_task.done()

    def start_interval(self) -> None:
        self.stop_interval()
        self._interval_task = asyncio.get_running_loop().create_task(
            self._run_interval(), name=self.interval_event
        )

    def stop_interval(self) -> None:
        if self._interval_task is not None:
            self._interval_task.cancel()
            self._interval_task = None

    async def _run_interval(self) -> None:
        while True:
            await asyncio.sleep(self.check_interval)
            try:
                await self.check_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.error(f"{self.interval_event}.failed", exc_info=True)

    @abstractmethod
    async def check_once(self) -> None: ...

    # ------------- cross-tab -------------------------------------------

    def signal_login(self) -> None:
        if self._storage is not None:
            self._storage.set_item(LOGIN_SIGNAL_KEY, str(self._clock()))

    def signal_logout(self) -> None:
        if self._storage is not None:
            self._storage.set_item(LOGOUT_SIGNAL_KEY, str(self._clock()))

    def subscribe(
        self,
        *,
        on_login: Callback | None = None,
        on_logout: Callback | None = None,
        on_session_expired: ExpiredCallback | None = None,
    ) -> Callable[[], None]:
        """Listen for other tabs' signals and start the periodic expiry check.

        Returns a teardown callable equivalent to :meth:`dispose`.
        """

        self._callbacks = CrossTabCallbacks(
            on_login=on_login,
            on_logout=on_logout,
            on_session_expired=on_session_expired,
        )
        if self._storage is not None:
            self._storage.add_listener(self._on_storage)
        self._subscribed = True
        self.start_interval()
        return self.dispose

    def _on_storage(self, event: StorageEvent) -> None:
        if not event.new_value:
            return
        if event.key == LOGIN_SIGNAL_KEY and self._callbacks.on_login is not None:
            self._callbacks.on_login()
        elif event.key == LOGOUT_SIGNAL_KEY and self._callbacks.on_logout is not None:
            self._callbacks.on_logout()

    # ------------- sign-out --------------------------------------------

    def login_url(self, reason: str) -> str:
        return f"{self.login_path}?reason={reason}"

    async def _sign_out_with(self, error: SessionExpiredError) -> None:
        callback_url = self.login_url(error.reason)
        logger.info("session.sign_out", extra=log_context(reason=error.reason))
        if self._sign_out is not None:
            try:
                await _maybe_await(self._sign_out(callback_url))
                return
            except Exception:
                logger.error(
                    "session.sign_out.failed",
                    exc_info=True,
                    extra=log_context(reason=error.reason),
                )
        self._fallback_redirect(callback_url)

    def _fallback_redirect(self, url: str) -> None:
        if self._redirect is None:
            logger.warning("session.redirect.unavailable", extra=log_context(url=url))
            return
        try:
            self._redirect(url)
        except Exception:
            logger.error("session.redirect.failed", exc_info=True, extra=log_context(url=url))

    # ------------- teardown --------------------------------------------

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Remove every listener and cancel the interval. Safe to call twice."""

        if self._storage is not None:
            self._storage.remove_listener(self._on_storage)
        self._subscribed = False
        self.stop_activity_monitoring()
        self.stop_interval()
        self._disposed = True


class SessionActivityMonitor(_ActivityTracker):
    """Storage-backed monitor shared by every tab of an origin."""

    def __init__(
        self,
        storage: StorageView,
        document: EventTarget,
        *,
        timeout_ms: int = SESSION_TIMEOUT_MS,
        warning_window_ms: int = WARNING_WINDOW_MS,
        check_interval: float = CHECK_INTERVAL_SECONDS,
        clock: Clock = now_ms,
        sign_out: SignOut | None = None,
        redirect: Redirect | None = None,
        login_path: str = DEFAULT_LOGIN_PATH,
    ) -> None:
        super().__init__(
            document,
            timeout_ms=timeout_ms,
            warning_window_ms=warning_window_ms,
            check_interval=check_interval,
            clock=clock,
            sign_out=sign_out,
            redirect=redirect,
            login_path=login_path,
            storage=storage,
        )
        self._storage: StorageView = storage

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: StorageView,
        document: EventTarget,
        **kwargs: Any,
    ) -> SessionActivityMonitor:
        return cls(
            storage,
            document,
            timeout_ms=settings.session_timeout_ms,
            warning_window_ms=settings.session_warning_window_seconds * 1000,
            check_interval=float(settings.session_check_interval_seconds),
            login_path=settings.login_path,
            **kwargs,
        )

    # ------------- session data ----------------------------------------

    def initialize(self, snapshot: SessionSnapshot) -> SessionActivityMonitor:
        """Store ``snapshot``, record activity, signal login, start listening."""

        now = self._clock()
        stored = snapshot.model_copy(
            update={"last_activity": now, "session_start": snapshot.session_start or now}
        )
        self._storage.set_item(SESSION_DATA_KEY, stored.model_dump_json())
        self.record_activity()
        self.signal_login()
        self.start_activity_monitoring()
        self._disposed = False
        logger.info("session.initialized", extra=log_context(user_id=snapshot.user_id))
        return self

    def session_data(self) -> SessionSnapshot | None:
        raw = self._storage.get_item(SESSION_DATA_KEY)
        if not raw:
            return None
        try:
            return SessionSnapshot.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("session.data.invalid")
            return None

    def record_activity(self) -> None:
        self._storage.set_item(LAST_ACTIVITY_KEY, str(self._clock()))

    def last_activity(self) -> int | None:
        raw = self._storage.get_item(LAST_ACTIVITY_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def clear_session(self) -> None:
        """Drop session state, tell other tabs, and stop tracking activity."""

        self._storage.remove_item(SESSION_DATA_KEY)
        self._storage.remove_item(LAST_ACTIVITY_KEY)
        self.signal_logout()
        self.stop_activity_monitoring()
        self._clear_legacy_data()

    def _clear_legacy_data(self) -> None:
        for key in LEGACY_KEYS:
            self._storage.remove_item(key)
        self._storage.session_storage.clear()

    async def check_once(self) -> None:
        if self.is_expired() and self.session_data() is not None:
            logger.info("session.timeout", extra=log_context(timeout_ms=self.timeout_ms))
            error = SessionExpiredError("timeout")
            if self._callbacks.on_session_expired is not None:
                await _maybe_await(self._callbacks.on_session_expired(error))
            else:
                await self.force_logout(error.reason)

    async def force_logout(self, reason: str = "timeout") -> None:
        """Clear local state, signal other tabs, then sign out with ``reason``."""

        self.clear_session()
        await self._sign_out_with(SessionExpiredError(reason))


class DelegatedSessionMonitor(_ActivityTracker):
    """In-memory monitor that defers session validity to an external provider."""

    interval_event = "session.validate"

    def __init__(
        self,
        document: EventTarget,
        *,
        get_session: SessionLookup,
        sign_out: SignOut,
        redirect: Redirect | None = None,
        timeout_ms: int = SESSION_TIMEOUT_MS,
        warning_window_ms: int = WARNING_WINDOW_MS,
        check_interval: float = DELEGATED_CHECK_INTERVAL_SECONDS,
        clock: Clock = now_ms,
        login_path: str = DEFAULT_LOGIN_PATH,
        storage: StorageView | None = None,
    ) -> None:
        super().__init__(
            document,
            timeout_ms=timeout_ms,
            warning_window_ms=warning_window_ms,
            check_interval=check_interval,
            clock=clock,
            sign_out=sign_out,
            redirect=redirect,
            login_path=login_path,
            storage=storage,
        )
        self._get_session = get_session
        self._last_activity = clock()

    @classmethod
    def from_settings(cls, settings: Settings, document: EventTarget, **kwargs: Any) -> DelegatedSessionMonitor:
        return cls(
            document,
            timeout_ms=settings.session_timeout_ms,
            warning_window_ms=settings.session_warning_window_seconds * 1000,
            check_interval=float(settings.delegated_session_check_interval_seconds),
            login_path=settings.login_path,
            **kwargs,
        )

    def initialize(self) -> DelegatedSessionMonitor:
        self.record_activity()
        self.signal_login()
        self.start_activity_monitoring()
        self.start_interval()
        self._disposed = False
        logger.info("session.delegated.initialized")
        return self

    def record_activity(self) -> None:
        self._last_activity = self._clock()

    def last_activity(self) -> int | None:
        return self._last_activity

    async def check_once(self) -> None:
        await self.validate_session()

    async def validate_session(self) -> str | None:
        """Sign out on inactivity or a vanished session; returns the reason used.

        The logout signal is written before signing out so other tabs follow
        even when the sign-out call never returns.
        """

        if self.is_expired():
            logger.info("session.timeout", extra=log_context(timeout_ms=self.timeout_ms))
            self.signal_logout()
            await self._sign_out_with(SessionExpiredError("timeout"))
            return "timeout"

        session = await _maybe_await(self._get_session())
        if not session:
            logger.info("session.expired")
            self.signal_logout()
            await self._sign_out_with(SessionExpiredError("expired"))
            return "expired"
        return None


__all__ = [
    "ACTIVITY_EVENTS",
    "CrossTabCallbacks",
    "DelegatedSessionMonitor",
    "LAST_ACTIVITY_KEY",
    "LEGACY_KEYS",
    "LOGIN_SIGNAL_KEY",
    "LOGOUT_SIGNAL_KEY",
    "SESSION_DATA_KEY",
    "SESSION_TIMEOUT_MS",
    "SessionActivityMonitor",
    "SessionSnapshot",
]
