"""
Session Lifecycle Manager
-------------------------
Tracks one authenticated browser session: idle time, the expiry warning and
the obfuscated URL token of the current route.

States:
    NoSession --login--> Active
    Active --activity (throttled)--> Active
    Active --idle past warning point--> WarningShown
    WarningShown --stay logged in--> Active
    Active/WarningShown --idle past timeout--> Expired --forced logout--> NoSession

Idle time is a wall-clock computation with no server round-trip. The periodic
checker runs as an asyncio task owned by the manager; ``stop()`` cancels it.
"""

import asyncio
import time
import uuid
from enum import Enum
from typing import Callable, List, Optional

from loguru import logger

from app.client import session_url

LOGIN_ROUTE = "/login"
SESSION_EXPIRED_MESSAGE = "Your session has expired due to inactivity. Please log in again."

SESSION_TIMEOUT_SECONDS = 30 * 60
WARNING_THRESHOLD_SECONDS = 2 * 60
ACTIVITY_THROTTLE_SECONDS = 5
CHECK_INTERVAL_SECONDS = 10

# Interaction events that count as activity
ACTIVITY_EVENTS = ("pointerdown", "keydown", "scroll", "touchstart", "pointermove")


class SessionState(str, Enum):
    NO_SESSION = "NoSession"
    ACTIVE = "Active"
    WARNING_SHOWN = "WarningShown"
    EXPIRED = "Expired"

_LIVE_STATES = (SessionState.ACTIVE, SessionState.WARNING_SHOWN)


StateListener = Callable[[SessionState, SessionState], None]
LogoutListener = Callable[[str], None]


def classify_idle_time(
    elapsed_seconds: float,
    timeout_seconds: float = SESSION_TIMEOUT_SECONDS,
    warning_seconds: float = WARNING_THRESHOLD_SECONDS,
) -> SessionState:
    """
    State of a live session after ``elapsed_seconds`` without activity.

    Expiry starts at the timeout itself; the warning starts once the idle time
    is past the warning point (timeout minus the warning threshold).
    """
    if elapsed_seconds >= timeout_seconds:
        return SessionState.EXPIRED
    if elapsed_seconds > timeout_seconds - warning_seconds:
        return SessionState.WARNING_SHOWN
    return SessionState.ACTIVE


class SessionLifecycleManager:
    """
    Client-side session state machine.

    Args:
        clock: Returns the current wall-clock time in seconds
        session_id_factory: Returns a new UUID formatted session id
        timeout_seconds: Idle time after which the session expires
        warning_seconds: How long before expiry the warning is shown
        throttle_seconds: Minimum gap between two recorded activity events
        check_interval_seconds: Period of the background checker
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        session_id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        timeout_seconds: float = SESSION_TIMEOUT_SECONDS,
        warning_seconds: float = WARNING_THRESHOLD_SECONDS,
        throttle_seconds: float = ACTIVITY_THROTTLE_SECONDS,
        check_interval_seconds: float = CHECK_INTERVAL_SECONDS,
    ):
        self._clock = clock
        self._session_id_factory = session_id_factory
        self.timeout_seconds = timeout_seconds
        self.warning_seconds = warning_seconds
        self.throttle_seconds = throttle_seconds
        self.check_interval_seconds = check_interval_seconds

        self.state = SessionState.NO_SESSION
        self.session_id: Optional[str] = None
        self.encoded_token: Optional[str] = None
        self.current_route: Optional[str] = None
        self.last_activity_time: float = 0.0
        self._last_recorded_event: float = 0.0

        self._state_listeners: List[StateListener] = []
        self._logout_listeners: List[LogoutListener] = []
        self._checker: Optional[asyncio.Task] = None

    # ========================================================================
    # LISTENERS
    # ========================================================================

    def add_state_listener(self, listener: StateListener) -> None:
        """Call ``listener(previous, current)`` on every state change."""
        self._state_listeners.append(listener)

    def add_logout_listener(self, listener: LogoutListener) -> None:
        """Call ``listener(message)`` when the session is force-logged-out."""
        self._logout_listeners.append(listener)

    def _set_state(self, new_state: SessionState) -> None:
        previous = self.state
        if previous == new_state:
            return
        self.state = new_state
        logger.debug(f"Session state {previous.value} -> {new_state.value}")
        for listener in list(self._state_listeners):
            try:
                listener(previous, new_state)
            except Exception as e:
                logger.exception(f"Session state listener failed: {e}")

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.ACTIVE, SessionState.WARNING_SHOWN)

    @property
    def remaining_seconds(self) -> float:
        """Seconds until expiry; 0 without a live session."""
        if not self.is_active:
            return 0.0
        elapsed = self._clock() - self.last_activity_time
        return max(0.0, self.timeout_seconds - elapsed)

    def login(self, route: str = session_url.DEFAULT_ROUTE) -> str:
        """
        Start a new session and encode its first route.

        Any session still open is logged out first.

        Returns:
            str: The new session id
        """
        if self.session_id is not None:
            self.logout()

        now = self._clock()
        self.session_id = self._session_id_factory()
        self.last_activity_time = now
        self._last_recorded_event = now
        self.current_route = route
        self.encoded_token = session_url.encode(self.session_id, route)
        self._set_state(SessionState.ACTIVE)
        logger.info("Session started")
        return self.session_id

    def logout(self) -> bool:
        """End the session. Returns False when there was nothing to end."""
        if self.session_id is None:
            return False
        self.session_id = None
        self.encoded_token = None
        self.current_route = None
        self.last_activity_time = 0.0
        self._last_recorded_event = 0.0
        self._set_state(SessionState.NO_SESSION)
        logger.info("Session ended")
        return True

    def _reset_activity(self, now: float) -> None:
        # last_activity_time never moves backwards while the session is live
        self.last_activity_time = max(self.last_activity_time, now)
        self._set_state(SessionState.ACTIVE)

    def record_activity(self, event: str = "pointerdown") -> bool:
        """
        Register a user interaction.

        Events closer than the throttle window to the last recorded one are
        ignored. Returns True when the activity clock was reset.
        """
        if not self.is_active or event not in ACTIVITY_EVENTS:
            return False
        now = self._clock()
        if now - self._last_recorded_event < self.throttle_seconds:
            return False
        self._last_recorded_event = now
        self._reset_activity(now)
        return True

    def stay_logged_in(self) -> bool:
        """Dismiss the expiry warning and re-arm the idle timer."""
        if not self.is_active:
            return False
        self._reset_activity(self._clock())
        return True

    def check(self) -> SessionState:
        """
        Evaluate idle time and apply the resulting transition.

        An expired session is force-logged-out and the logout listeners are
        told why; the returned value is the evaluated state (``Expired``)
        even though the manager ends in ``NoSession``.
        """
        if not self.is_active:
            return self.state

        evaluated = classify_idle_time(
            self._clock() - self.last_activity_time,
            self.timeout_seconds,
            self.warning_seconds,
        )
        self._set_state(evaluated)
        if evaluated == SessionState.EXPIRED:
            self._force_logout(SESSION_EXPIRED_MESSAGE)
        return evaluated

    def _force_logout(self, message: str) -> None:
        logger.info("Session expired; forcing logout")
        self.logout()
        for listener in list(self._logout_listeners):
            try:
                listener(message)
            except Exception as e:
                logger.exception(f"Session logout listener failed: {e}")

    # ========================================================================
    # URL TOKENS
    # ========================================================================

    def navigate(self, route: str) -> Optional[str]:
        """
        Re-encode the visible URL for a route change.

        The session stays live while the expiry warning is showing, so a route
        change then is re-encoded too. Navigation does not count as activity.

        Returns the token that replaces the current URL, or None when the route
        keeps its plain path (no live session, unmapped route, bad token).
        """
        if self.state not in _LIVE_STATES or not session_url.is_route_mapped(route):
            return None
        token = session_url.encode(self.session_id, route)
        if not session_url.is_valid_token(token):
            logger.warning(f"Generated an invalid session token for {route}")
            return None
        self.current_route = route
        self.encoded_token = token
        return token

    def resolve_token(self, token: str) -> str:
        """Route an address-bar token points to, or the login route."""
        session_id, route = session_url.decode(token)
        if session_id is None or session_id != self.session_id:
            return LOGIN_ROUTE
        return route

    # ========================================================================
    # BACKGROUND CHECKER
    # ========================================================================

    async def _run_checker(self) -> None:
        while True:
            await asyncio.sleep(self.check_interval_seconds)
            self.check()

    def start(self) -> None:
        """Start the periodic checker on the running event loop."""
        if self._checker is not None and not self._checker.done():
            return
        self._checker = asyncio.get_running_loop().create_task(self._run_checker())

    async def stop(self) -> None:
        """Cancel the periodic checker and wait for it to finish."""
        checker, self._checker = self._checker, None
        if checker is None:
            return
        checker.cancel()
        try:
            await checker
        except asyncio.CancelledError:
            pass
