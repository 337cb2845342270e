"""Client-side real-time synchronization layer for two-party chat."""

from .client import ChatClient
from .config import SyncConfig, load_config_from_env
from .conversation_store import ConversationState, ConversationStore
from .errors import ChannelFailure, Err, Ok, RemoteFailure, Result, SyncError, ValidationFailure
from .gateway_client import GatewayClient
from .hub import EventHub, Subscription
from .models import Identity, Message
from .notify import LoggingNotifier, Notifier
from .session_store import AuthStatus, SessionState, SessionStore
from .transport import NEW_MESSAGE_EVENT, ONLINE_USERS_EVENT, TransportHandle

__all__ = [
    "AuthStatus",
    "ChannelFailure",
    "ChatClient",
    "ConversationState",
    "ConversationStore",
    "Err",
    "EventHub",
    "GatewayClient",
    "Identity",
    "LoggingNotifier",
    "Message",
    "NEW_MESSAGE_EVENT",
    "Notifier",
    "ONLINE_USERS_EVENT",
    "Ok",
    "RemoteFailure",
    "Result",
    "SessionState",
    "SessionStore",
    "Subscription",
    "SyncConfig",
    "SyncError",
    "TransportHandle",
    "ValidationFailure",
    "load_config_from_env",
]
