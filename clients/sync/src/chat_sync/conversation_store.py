"""Roster, selected partner, and the message log for that partner.

The log only ever holds messages exchanged with ``selected_user``. Each
change of selection starts a new epoch; fetches, sends and channel
deliveries that belong to an earlier epoch are dropped instead of applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .errors import Err, Ok, RemoteFailure, Result, SyncError, ValidationFailure
from .gateway_client import GatewayClient
from .hub import EventHub, Subscription
from .models import Identity, Message
from .notify import LoggingNotifier, Notifier
from .session_store import SessionStore
from .transport import NEW_MESSAGE_EVENT, TransportHandle
from .validation import validate_message

logger = logging.getLogger(__name__)

_CHANGE = "change"


@dataclass(frozen=True)
class ConversationState:
    users: Tuple[Identity, ...]
    selected_user: Optional[Identity]
    messages: Tuple[Message, ...]
    is_users_loading: bool
    is_messages_loading: bool
    subscribed: bool


class ConversationStore:
    def __init__(
        self,
        gateway: GatewayClient,
        session: SessionStore,
        *,
        notifier: Notifier | None = None,
    ) -> None:
        self.gateway = gateway
        self.session = session
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.users: List[Identity] = []
        self.selected_user: Identity | None = None
        self.messages: List[Message] = []
        self.is_users_loading = False
        self.is_messages_loading = False
        self._epoch = 0
        self._messages_request = 0
        self._subscription: Subscription | None = None
        self._subscribed_handle: TransportHandle | None = None
        self._watchers = EventHub()

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    def snapshot(self) -> ConversationState:
        return ConversationState(
            users=tuple(self.users),
            selected_user=self.selected_user,
            messages=tuple(self.messages),
            is_users_loading=self.is_users_loading,
            is_messages_loading=self.is_messages_loading,
            subscribed=self.subscribed,
        )

    def watch(self, callback: Callable[["ConversationStore"], None]) -> Subscription:
        return self._watchers.subscribe(_CHANGE, callback)

    def unwatch(self, subscription: Subscription) -> None:
        self._watchers.unsubscribe(subscription)

    def _changed(self) -> None:
        self._watchers.dispatch(_CHANGE, self)

    def _reject(self, exc: SyncError) -> Err:
        logger.info("Conversation operation failed: %s", exc.message)
        self.notifier.error(exc.message)
        return Err(exc)

    def _append(self, message: Message) -> None:
        # Rebind rather than mutate so earlier snapshots stay valid.
        self.messages = [*self.messages, message]
        self._changed()

    def visible_roster(self, online_only: bool = False) -> List[Identity]:
        if not online_only:
            return list(self.users)
        return [user for user in self.users if self.session.is_online(user.id)]

    async def fetch_roster(self) -> Result[List[Identity]]:
        self.is_users_loading = True
        self._changed()
        try:
            users = await self.gateway.list_users()
        except RemoteFailure as exc:
            self.users = []
            return self._reject(exc)
        else:
            self.users = users
            return Ok(users)
        finally:
            self.is_users_loading = False
            self._changed()

    async def fetch_conversation(self, partner_id: str) -> Result[List[Message]]:
        epoch = self._epoch
        self._messages_request += 1
        request_id = self._messages_request
        self.is_messages_loading = True
        self._changed()

        def is_current() -> bool:
            return epoch == self._epoch and request_id == self._messages_request

        try:
            messages = await self.gateway.list_messages(partner_id)
        except RemoteFailure as exc:
            if is_current():
                self.messages = []
            return self._reject(exc)
        else:
            if is_current():
                self.messages = list(messages)
            else:
                logger.debug("Discarding stale conversation fetch for %s", partner_id)
            return Ok(messages)
        finally:
            if request_id == self._messages_request:
                self.is_messages_loading = False
            self._changed()

    def select_partner(self, entry: Identity | None) -> None:
        previous = self.selected_user
        self.selected_user = entry
        if (previous.id if previous else None) != (entry.id if entry else None):
            self._epoch += 1
            self.messages = []
            logger.debug("Selected partner %s", entry.id if entry else None)
        self._changed()

    async def send_message(self, text: str | None = None, image: str | None = None) -> Result[Message]:
        partner = self.selected_user
        try:
            if partner is None:
                raise ValidationFailure("No conversation selected")
            validate_message(text, image)
        except ValidationFailure as exc:
            return self._reject(exc)

        epoch = self._epoch
        try:
            message = await self.gateway.send_message(partner.id, text=text, image=image)
        except RemoteFailure as exc:
            return self._reject(exc)
        if epoch == self._epoch:
            self._append(message)
        else:
            logger.debug("Sent message %s after selection changed; not appended", message.id)
        return Ok(message)

    def subscribe_to_messages(self) -> bool:
        partner = self.selected_user
        if partner is None:
            logger.debug("subscribe_to_messages skipped: no partner selected")
            return False
        handle = self.session.socket
        if handle is None:
            logger.debug("subscribe_to_messages skipped: no channel")
            return False

        if self._subscription is not None:
            self.unsubscribe_from_messages()

        partner_id = partner.id

        def on_new_message(payload: Any) -> None:
            self._deliver(partner_id, payload)

        self._subscription = handle.on(NEW_MESSAGE_EVENT, on_new_message)
        self._subscribed_handle = handle
        logger.debug("Subscribed to messages from %s", partner_id)
        return True

    def unsubscribe_from_messages(self) -> None:
        subscription, self._subscription = self._subscription, None
        handle, self._subscribed_handle = self._subscribed_handle, None
        if handle is None:
            handle = self.session.socket
        if handle is None:
            return
        handle.off(NEW_MESSAGE_EVENT, subscription)

    def _deliver(self, partner_id: str, payload: Any) -> None:
        selected = self.selected_user
        if selected is None or selected.id != partner_id:
            logger.debug("Dropping delivery for stale conversation %s", partner_id)
            return
        try:
            message = Message.from_payload(payload)
        except ValueError as exc:
            logger.warning("Ignoring malformed message event: %s", exc)
            return
        if message.sender_id != selected.id:
            return
        self._append(message)

    async def open_conversation(self, entry: Identity | None) -> Result[List[Message]]:
        """Switch to ``entry``: unsubscribe, select, fetch, then subscribe."""
        self.unsubscribe_from_messages()
        self.select_partner(entry)
        if entry is None:
            return Ok([])
        epoch = self._epoch
        result = await self.fetch_conversation(entry.id)
        if epoch == self._epoch:
            self.subscribe_to_messages()
        return result

    def reset(self) -> None:
        self.unsubscribe_from_messages()
        self.select_partner(None)
        self.users = []
        self.is_users_loading = False
        self.is_messages_loading = False
        self._changed()
