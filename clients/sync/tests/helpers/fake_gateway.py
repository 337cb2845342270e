"""In-process chat gateway used by the HTTP and channel tests."""

import re
import secrets
import time
from typing import Any, Dict, List, Set, Tuple

from aiohttp import WSMsgType, web

from chat_sync.models import Identity, Message
from chat_sync.transport import encode_frame

_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class FakeChatGateway:
    """Auth and message routes under ``/api`` plus the ``/ws`` channel.

    ``respond_next(route, status, body)`` overrides the next request to a
    named route, which is how tests inject remote failures.
    """

    def __init__(self) -> None:
        self.users: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, str] = {}
        self.messages: List[Message] = []
        self.sockets: Dict[str, Set[web.WebSocketResponse]] = {}
        self.overrides: Dict[str, Tuple[int, Any]] = {}
        self.socket_connects: List[str] = []

    def respond_next(self, route: str, status: int, body: Any) -> None:
        self.overrides[route] = (status, body)

    def fail_next(self, route: str, status: int = 500, message: str = "Internal Server Error") -> None:
        self.respond_next(route, status, {"message": message})

    def add_user(self, full_name: str, email: str, password: str) -> Dict[str, Any]:
        user = {
            "_id": f"u{len(self.users) + 1}",
            "fullName": full_name,
            "email": email,
            "password": password,
            "profilePic": "",
            "createdAt": _now_iso(),
        }
        self.users[user["_id"]] = user
        return user

    def online_user_ids(self) -> List[str]:
        return [user_id for user_id, sockets in self.sockets.items() if sockets]

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[self._override_middleware])
        app.router.add_get("/api/auth/check", self.check, name="check")
        app.router.add_post("/api/auth/signup", self.signup, name="signup")
        app.router.add_post("/api/auth/login", self.login, name="login")
        app.router.add_post("/api/auth/logout", self.logout, name="logout")
        app.router.add_put("/api/auth/update-profile", self.update_profile, name="update-profile")
        app.router.add_get("/api/messages/users", self.list_users, name="users")
        app.router.add_get("/api/messages/{partner_id}", self.list_messages, name="messages")
        app.router.add_post("/api/messages/send/{partner_id}", self.send_message, name="send")
        app.router.add_get("/ws", self.websocket, name="ws")
        return app

    @web.middleware
    async def _override_middleware(self, request: web.Request, handler):
        route = request.match_info.route.name
        if route in self.overrides:
            status, body = self.overrides.pop(route)
            return web.json_response(body, status=status)
        return await handler(request)

    @staticmethod
    def _public(user: Dict[str, Any]) -> Dict[str, Any]:
        return Identity.from_payload(user).to_payload()

    def _with_session(self, user: Dict[str, Any], status: int = 200) -> web.Response:
        token = secrets.token_urlsafe(16)
        self.sessions[token] = user["_id"]
        resp = web.json_response(self._public(user), status=status)
        resp.set_cookie("jwt", token, httponly=True)
        return resp

    def _current_user(self, request: web.Request) -> Dict[str, Any]:
        user_id = self.sessions.get(request.cookies.get("jwt", ""))
        if user_id is None:
            raise web.HTTPUnauthorized(
                text='{"message": "Unauthorized - No Token Provided"}',
                content_type="application/json",
            )
        return self.users[user_id]

    async def check(self, request: web.Request) -> web.Response:
        return web.json_response(self._public(self._current_user(request)))

    async def signup(self, request: web.Request) -> web.Response:
        body = await request.json()
        full_name = body.get("fullName")
        email = body.get("email")
        password = body.get("password")
        if not full_name or not email or not password:
            return web.json_response({"message": "All fields are required"}, status=400)
        if len(password) < 6:
            return web.json_response({"message": "Password must be at least 6 characters"}, status=400)
        if not _EMAIL_RE.search(email):
            return web.json_response({"message": "Invalid email format"}, status=400)
        if any(user["email"] == email for user in self.users.values()):
            return web.json_response({"message": "Email already exists"}, status=400)
        return self._with_session(self.add_user(full_name, email, password), status=201)

    async def login(self, request: web.Request) -> web.Response:
        body = await request.json()
        for user in self.users.values():
            if user["email"] == body.get("email") and user["password"] == body.get("password"):
                return self._with_session(user)
        return web.json_response({"message": "Invalid credentials"}, status=400)

    async def logout(self, request: web.Request) -> web.Response:
        self.sessions.pop(request.cookies.get("jwt", ""), None)
        resp = web.json_response({"message": "Logged out successfully"})
        resp.del_cookie("jwt")
        return resp

    async def update_profile(self, request: web.Request) -> web.Response:
        user = self._current_user(request)
        body = await request.json()
        if not body.get("profilePic") and not body.get("fullName"):
            return web.json_response({"message": "Profile pic is required"}, status=400)
        for key in ("profilePic", "fullName"):
            if body.get(key):
                user[key] = str(body[key]).strip()
        return web.json_response(self._public(user))

    async def list_users(self, request: web.Request) -> web.Response:
        me = self._current_user(request)
        others = [self._public(user) for user in self.users.values() if user["_id"] != me["_id"]]
        return web.json_response(others)

    async def list_messages(self, request: web.Request) -> web.Response:
        me = self._current_user(request)["_id"]
        partner = request.match_info["partner_id"]
        pair = {me, partner}
        conversation = [m.to_payload() for m in self.messages if {m.sender_id, m.receiver_id} == pair]
        return web.json_response(conversation)

    async def send_message(self, request: web.Request) -> web.Response:
        sender = self._current_user(request)["_id"]
        receiver = request.match_info["partner_id"]
        body = await request.json()
        message = Message(
            id=f"m{len(self.messages) + 1}",
            sender_id=sender,
            receiver_id=receiver,
            text=body.get("text"),
            image=body.get("image"),
            created_at=_now_iso(),
        )
        self.messages.append(message)
        await self._emit_to(receiver, "newMessage", message.to_payload())
        return web.json_response(message.to_payload(), status=201)

    async def _emit_to(self, user_id: str, event: str, body: Any) -> None:
        for ws in list(self.sockets.get(user_id, ())):
            if not ws.closed:
                await ws.send_json(encode_frame(event, body))

    async def _broadcast_presence(self) -> None:
        online = self.online_user_ids()
        for user_id in list(self.sockets):
            await self._emit_to(user_id, "getOnlineUsers", online)

    async def websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        user_id = request.query.get("userId", "")
        self.socket_connects.append(user_id)
        if user_id:
            self.sockets.setdefault(user_id, set()).add(ws)
            await self._broadcast_presence()
        try:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    break
        finally:
            sockets = self.sockets.get(user_id)
            if sockets is not None:
                sockets.discard(ws)
                if not sockets:
                    self.sockets.pop(user_id, None)
                await self._broadcast_presence()
        return ws

    async def push(self, user_id: str, event: str, body: Any) -> None:
        """Emit an arbitrary event to one user's sockets."""
        await self._emit_to(user_id, event, body)
