from __future__ import annotations

from .config import SyncConfig, load_config_from_env
from .conversation_store import ConversationStore
from .errors import Result
from .gateway_client import GatewayClient
from .notify import Notifier
from .session_store import SessionStore
from .transport import TransportHandle


class ChatClient:
    """Wires one gateway client and both stores for a single process lifetime."""

    def __init__(self, gateway: GatewayClient, session: SessionStore, conversations: ConversationStore) -> None:
        self.gateway = gateway
        self.session = session
        self.conversations = conversations

    @classmethod
    def from_config(cls, config: SyncConfig | None = None, *, notifier: Notifier | None = None) -> "ChatClient":
        config = config or load_config_from_env()
        gateway = GatewayClient(config.api_url, timeout_s=config.request_timeout_s)

        def transport_factory(user_id: str) -> TransportHandle:
            return TransportHandle(config.socket_url, user_id, heartbeat_s=config.heartbeat_s)

        session = SessionStore(gateway, transport_factory=transport_factory, notifier=notifier)
        conversations = ConversationStore(gateway, session, notifier=notifier)
        return cls(gateway, session, conversations)

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def logout(self) -> Result[None]:
        self.conversations.reset()
        return await self.session.logout()

    async def close(self) -> None:
        self.conversations.unsubscribe_from_messages()
        await self.session.disconnect_socket()
        await self.gateway.close()
