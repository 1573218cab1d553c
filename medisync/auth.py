"""
Authentication State.

Provides an injectable ``AuthContext`` that holds the process-wide auth
state (status, user, session, role) and lets readers subscribe to changes.

Exactly one owner, the ``AuthService``, calls :meth:`AuthContext.publish`.
Everything else reads the properties or subscribes.

Usage::

    from medisync.auth import AuthContext

    context = AuthContext(logger=StructuredLogger(name="medisync.auth"))
    unsubscribe = context.subscribe(lambda snap: print(snap.status, snap.role))
    ...
    unsubscribe()
"""

from __future__ import annotations

import itertools
import threading
from typing import Callable, Optional

from medisync.logger import StructuredLogger
from medisync.models.auth_models import AuthSnapshot
from medisync.models.enums import AuthStatus, UserRole
from medisync.models.user import AuthenticatedUser, SessionInfo

AuthSubscriber = Callable[[AuthSnapshot], None]


class AuthContext:
    """Reactive holder of the current authentication state.

    Pass a single instance by reference to every consumer.  State is an
    immutable ``AuthSnapshot`` swapped atomically under a lock; subscribers
    receive the new snapshot after each *effective* change, in publish
    order.  Publishing a snapshot equal to the current one notifies no one.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._logger: StructuredLogger = logger
        self._snapshot: AuthSnapshot = AuthSnapshot()
        self._subscribers: dict[int, AuthSubscriber] = {}
        self._tokens = itertools.count(1)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def snapshot(self) -> AuthSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def status(self) -> AuthStatus:
        return self.snapshot().status

    @property
    def user(self) -> Optional[AuthenticatedUser]:
        return self.snapshot().user

    @property
    def session(self) -> Optional[SessionInfo]:
        return self.snapshot().session

    @property
    def role(self) -> UserRole:
        return self.snapshot().role

    @property
    def loading(self) -> bool:
        """``True`` until the first session fetch has resolved."""
        return self.snapshot().loading

    @property
    def is_authenticated(self) -> bool:
        return self.snapshot().is_authenticated

    def get_current_user(self) -> AuthenticatedUser:
        """Return the authenticated user.

        Raises:
            RuntimeError: If no user is currently authenticated.
        """
        user = self.user
        if user is None:
            raise RuntimeError("No user is currently authenticated. Login required.")
        return user

    def subscribe(self, callback: AuthSubscriber) -> Callable[[], None]:
        """Register *callback* for state changes.

        Returns a zero-argument function that removes the subscription;
        calling it more than once is harmless.
        """
        with self._lock:
            token = next(self._tokens)
            self._subscribers[token] = callback

        def _unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Write side (owner only)
    # ------------------------------------------------------------------

    def publish(self, snapshot: AuthSnapshot) -> bool:
        """Replace the current state.  Returns ``True`` if it changed.

        Subscriber exceptions are logged and swallowed so a faulty reader
        cannot break the owner's event processing.
        """
        with self._lock:
            if snapshot == self._snapshot:
                return False
            self._snapshot = snapshot
            subscribers = list(self._subscribers.values())

        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception as exc:
                self._logger.error(
                    "Auth subscriber %r failed: %s", callback, exc, exc_info=True,
                )
        return True
