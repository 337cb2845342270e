"""Authenticated identity, presence, and ownership of the real-time channel."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Optional

from .errors import ChannelFailure, Err, Ok, RemoteFailure, Result, SyncError, ValidationFailure
from .gateway_client import GatewayClient
from .hub import EventHub, Subscription
from .models import Identity
from .notify import LoggingNotifier, Notifier
from .transport import ONLINE_USERS_EVENT, TransportHandle
from .validation import validate_login, validate_profile_update, validate_signup

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str], TransportHandle]
_CHANGE = "change"


class AuthStatus(Enum):
    CHECKING_AUTH = "checking_auth"
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class SessionState:
    status: AuthStatus
    auth_user: Optional[Identity]
    online_users: FrozenSet[str]
    is_checking_auth: bool
    is_signing_up: bool
    is_logging_in: bool
    is_updating_profile: bool
    socket_connected: bool


class SessionStore:
    """Owns ``auth_user``, ``online_users`` and the single ``socket`` handle.

    A handle exists only while an identity is held; it is created by
    ``connect_socket`` after every successful authentication and torn down
    by ``logout``/``disconnect_socket``. Other stores borrow ``socket`` to
    register listeners but never connect or disconnect it.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        *,
        transport_factory: TransportFactory,
        notifier: Notifier | None = None,
    ) -> None:
        self.gateway = gateway
        self.notifier: Notifier = notifier or LoggingNotifier()
        self._transport_factory = transport_factory
        self.auth_user: Identity | None = None
        self.online_users: FrozenSet[str] = frozenset()
        self.socket: TransportHandle | None = None
        self.is_checking_auth = True
        self.is_signing_up = False
        self.is_logging_in = False
        self.is_updating_profile = False
        self._auth_check = 0
        self._watchers = EventHub()

    @property
    def status(self) -> AuthStatus:
        if self.is_checking_auth:
            return AuthStatus.CHECKING_AUTH
        if self.auth_user is None:
            return AuthStatus.ANONYMOUS
        return AuthStatus.AUTHENTICATED

    def is_online(self, user_id: str) -> bool:
        return user_id in self.online_users

    def snapshot(self) -> SessionState:
        return SessionState(
            status=self.status,
            auth_user=self.auth_user,
            online_users=self.online_users,
            is_checking_auth=self.is_checking_auth,
            is_signing_up=self.is_signing_up,
            is_logging_in=self.is_logging_in,
            is_updating_profile=self.is_updating_profile,
            socket_connected=self.socket is not None and self.socket.connected,
        )

    def watch(self, callback: Callable[["SessionStore"], None]) -> Subscription:
        return self._watchers.subscribe(_CHANGE, callback)

    def unwatch(self, subscription: Subscription) -> None:
        self._watchers.unsubscribe(subscription)

    def _changed(self) -> None:
        self._watchers.dispatch(_CHANGE, self)

    def _reject(self, exc: SyncError) -> Err:
        logger.info("Session operation failed: %s", exc.message)
        self.notifier.error(exc.message)
        return Err(exc)

    async def _establish(self, identity: Identity) -> None:
        if self.socket is not None and self.socket.user_id != identity.id:
            await self.disconnect_socket()
        self.auth_user = identity
        self._changed()
        logger.info("Authenticated as %s", identity.id)
        await self.connect_socket()

    async def check_auth(self) -> Result[Identity]:
        self._auth_check += 1
        check_id = self._auth_check
        self.is_checking_auth = True
        self._changed()
        try:
            identity = await self.gateway.check_auth()
        except RemoteFailure as exc:
            logger.info("No valid session: %s", exc.message)
            if check_id == self._auth_check:
                self.auth_user = None
                await self.disconnect_socket()
            return Err(exc)
        else:
            if check_id == self._auth_check:
                await self._establish(identity)
            else:
                logger.debug("Discarding superseded session check for %s", identity.id)
            return Ok(identity)
        finally:
            # Only the latest check owns the flag.
            if check_id == self._auth_check:
                self.is_checking_auth = False
            self._changed()

    async def signup(self, full_name: str, email: str, password: str) -> Result[Identity]:
        try:
            validate_signup(full_name, email, password)
        except ValidationFailure as exc:
            return self._reject(exc)

        self.is_signing_up = True
        self._changed()
        try:
            identity = await self.gateway.signup(full_name, email, password)
        except RemoteFailure as exc:
            return self._reject(exc)
        else:
            await self._establish(identity)
            self.notifier.success("Account created successfully")
            return Ok(identity)
        finally:
            self.is_signing_up = False
            self._changed()

    async def login(self, email: str, password: str) -> Result[Identity]:
        try:
            validate_login(email, password)
        except ValidationFailure as exc:
            return self._reject(exc)

        self.is_logging_in = True
        self._changed()
        try:
            identity = await self.gateway.login(email, password)
        except RemoteFailure as exc:
            return self._reject(exc)
        else:
            await self._establish(identity)
            self.notifier.success("Logged in successfully")
            return Ok(identity)
        finally:
            self.is_logging_in = False
            self._changed()

    async def update_profile(self, fields: Dict[str, Any]) -> Result[Identity]:
        try:
            if self.auth_user is None:
                raise ValidationFailure("You must be logged in to update your profile")
            validate_profile_update(fields)
        except ValidationFailure as exc:
            return self._reject(exc)

        self.is_updating_profile = True
        self._changed()
        try:
            identity = await self.gateway.update_profile(fields)
        except RemoteFailure as exc:
            return self._reject(exc)
        else:
            # The server's record replaces ours; no local merge.
            if self.auth_user is not None and self.auth_user.id == identity.id:
                self.auth_user = identity
            else:
                logger.info("Discarding profile update for %s: session changed", identity.id)
            self.notifier.success("Profile updated successfully")
            return Ok(identity)
        finally:
            self.is_updating_profile = False
            self._changed()

    async def logout(self) -> Result[None]:
        result: Result[None]
        try:
            await self.gateway.logout()
        except RemoteFailure as exc:
            result = self._reject(exc)
        else:
            self.notifier.success("Logged out successfully")
            result = Ok(None)
        finally:
            self.auth_user = None
            await self.disconnect_socket()
            self._changed()
        logger.info("Logged out")
        return result

    async def connect_socket(self) -> Result[TransportHandle]:
        if self.auth_user is None:
            logger.debug("connect_socket skipped: not authenticated")
            return Err(ChannelFailure("Not authenticated"))

        handle = self.socket
        if handle is None:
            handle = self._transport_factory(self.auth_user.id)
            handle.on(ONLINE_USERS_EVENT, self._on_online_users)
            self.socket = handle
        elif handle.connected:
            return Ok(handle)

        try:
            await handle.connect()
        except ChannelFailure as exc:
            logger.warning("Real-time channel unavailable: %s", exc.message)
            if self.socket is handle:
                self.socket = None
                self.online_users = frozenset()
                self._changed()
            return Err(exc)
        if self.socket is not handle:
            # Torn down while the connect was in flight.
            await handle.disconnect()
            return Err(ChannelFailure("Session ended while connecting"))
        self._changed()
        return Ok(handle)

    async def disconnect_socket(self) -> None:
        handle = self.socket
        if handle is None:
            return
        self.socket = None
        self.online_users = frozenset()
        if handle.connected:
            await handle.disconnect()
        self._changed()

    def _on_online_users(self, payload: Any) -> None:
        if not isinstance(payload, (list, tuple)):
            logger.warning("Ignoring malformed presence broadcast: %r", payload)
            return
        self.online_users = frozenset(str(user_id) for user_id in payload)
        self._changed()
