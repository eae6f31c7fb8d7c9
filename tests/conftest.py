import contextlib
import itertools
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio

from roomchat.client.chat import ChatClient
from roomchat.config import ClientConfig
from roomchat.models.user import User
from roomchat.services.message_service import decode_file_data, forwarded_content
from roomchat.services.reaction_service import group_by_message, group_reactions
from roomchat.services.room_service import can_delete_room, plan_departure

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class HttpError(Exception):
    def __init__(self, status, message):
        super().__init__(message)
        self.status = status
        self.message = message


class FakeChatServer:
    """In-memory stand-in for the chat API, served through httpx.MockTransport.

    Tokens are ``token-<user id>``. ``fail_next`` makes the next request to a
    (method, path) pair fail with the given status.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self._ticks = itertools.count(1)
        self.users = {}
        self.rooms = {}
        self.members = {}
        self.last_read = {}
        self.messages = {}
        self.reactions = []
        self.calls = []
        self.failures = {}
        self.routes = {
            ("POST", "/auth"): self._auth,
            ("GET", "/users"): self._get_profile,
            ("PUT", "/users"): self._update_profile,
            ("POST", "/users"): self._search_users,
            ("GET", "/rooms"): self._list_rooms,
            ("POST", "/rooms"): self._create_room,
            ("PUT", "/rooms"): self._join_room,
            ("DELETE", "/rooms"): self._leave_room,
            ("POST", "/create-dm"): self._create_dm,
            ("DELETE", "/delete-room"): self._delete_room,
            ("GET", "/room-members"): self._list_members,
            ("POST", "/room-members"): self._add_member,
            ("DELETE", "/room-members"): self._remove_member,
            ("POST", "/room-members/transfer-admin"): self._transfer_admin,
            ("GET", "/messages"): self._get_messages,
            ("POST", "/messages"): self._send_message,
            ("PUT", "/messages"): self._mark_messages,
            ("DELETE", "/messages"): self._delete_message,
            ("GET", "/messages-search"): self._search_messages,
            ("POST", "/messages-forward"): self._forward_message,
            ("POST", "/mark-read"): self._mark_read,
            ("GET", "/reactions"): self._get_reactions,
            ("POST", "/reactions"): self._add_reaction,
            ("DELETE", "/reactions"): self._remove_reaction,
            ("POST", "/upload-file"): self._upload_file,
            ("GET", "/presence"): self._get_presence,
            ("POST", "/presence"): self._set_presence,
            ("PUT", "/presence"): self._heartbeat,
        }

    # -- seeding -------------------------------------------------------

    def now(self):
        return BASE_TIME + timedelta(seconds=next(self._ticks))

    def add_user(self, name, email=None, password="secret"):
        uid = next(self._ids)
        self.users[uid] = {
            "id": uid,
            "email": email or f"{name.lower()}@example.com",
            "name": name,
            "avatar": None,
            "online": False,
            "last_seen": None,
            "created_at": self.now(),
            "password": password,
        }
        return uid

    def token_for(self, user_id):
        return f"token-{user_id}"

    def add_room(self, name, creator, members=(), room_type="group"):
        rid = next(self._ids)
        ts = self.now()
        self.rooms[rid] = {
            "id": rid,
            "name": name,
            "description": None,
            "type": room_type,
            "admin_id": creator,
            "created_by": creator,
            "created_at": ts,
            "updated_at": ts,
        }
        self.members[rid] = {}
        for uid in dict.fromkeys([creator, *members]):
            self.members[rid][uid] = self.now()
            self.last_read[(rid, uid)] = self.now()
        return rid

    def add_message(self, room_id, user_id, content, message_type="text"):
        mid = next(self._ids)
        ts = self.now()
        self.messages[mid] = {
            "id": mid,
            "room_id": room_id,
            "user_id": user_id,
            "content": content,
            "type": message_type,
            "file_id": None,
            "created_at": ts,
            "read_by": [],
        }
        self.rooms[room_id]["updated_at"] = ts
        return mid

    def add_reaction(self, message_id, user_id, emoji):
        if self._find_reaction(message_id, user_id, emoji) is None:
            self.reactions.append({
                "message_id": message_id,
                "user_id": user_id,
                "emoji": emoji,
                "created_at": self.now(),
            })

    def fail_next(self, method, path, status=500, error="Boom"):
        self.failures[(method, path)] = (status, error)

    def transport(self):
        return httpx.MockTransport(self.handle)

    def count_calls(self, method, path):
        return sum(1 for call in self.calls if call == (method, path))

    # -- dispatch ------------------------------------------------------

    def handle(self, request):
        method, path = request.method, request.url.path
        self.calls.append((method, path))
        body = json.loads(request.content) if request.content else {}
        params = dict(request.url.params)
        try:
            if (method, path) in self.failures:
                raise HttpError(*self.failures.pop((method, path)))
            route = self.routes.get((method, path))
            if route is None:
                raise HttpError(404, "Not Found")
            user_id = None if path == "/auth" else self._authenticate(request)
            status, payload = route(user_id, body, params)
        except HttpError as err:
            return httpx.Response(err.status, json={"error": err.message})
        return httpx.Response(status, content=json.dumps(payload, default=_json_default))

    def _authenticate(self, request):
        header = request.headers.get("Authorization", "")
        token = header[7:] if header.startswith("Bearer ") else None
        if not token:
            raise HttpError(401, "No token provided")
        try:
            user_id = int(token.removeprefix("token-"))
        except ValueError:
            raise HttpError(401, "Invalid token")
        if user_id not in self.users:
            raise HttpError(401, "Invalid token")
        return user_id

    # -- views ---------------------------------------------------------

    def public_user(self, uid):
        return {k: v for k, v in self.users[uid].items() if k != "password"}

    def room_view(self, rid, viewer):
        room = dict(self.rooms[rid])
        room_messages = [m for m in self.messages.values() if m["room_id"] == rid]
        since = self.last_read.get((rid, viewer), BASE_TIME)
        room["member_count"] = len(self.members[rid])
        room["last_message_at"] = max((m["created_at"] for m in room_messages), default=None)
        room["unread_count"] = sum(
            1 for m in room_messages if m["user_id"] != viewer and m["created_at"] > since
        )
        return room

    def message_view(self, mid):
        message = dict(self.messages[mid])
        author = self.users[message["user_id"]]
        message["user_name"] = author["name"]
        message["user_avatar"] = author["avatar"]
        rows = [self._reaction_row(r) for r in self.reactions if r["message_id"] == mid]
        message["reactions"] = [a.model_dump(mode="json") for a in group_reactions(rows)]
        return message

    def _reaction_row(self, reaction):
        user = self.users[reaction["user_id"]]
        return {**reaction, "user_name": user["name"], "user_avatar": user["avatar"]}

    def _find_reaction(self, message_id, user_id, emoji):
        return next(
            (
                r for r in self.reactions
                if (r["message_id"], r["user_id"], r["emoji"]) == (message_id, user_id, emoji)
            ),
            None,
        )

    def _require_member(self, rid, uid):
        if rid not in self.rooms:
            raise HttpError(404, "Room not found")
        if uid not in self.members[rid]:
            raise HttpError(403, "Access denied to this room")

    def _drop_room(self, rid):
        self.rooms.pop(rid, None)
        self.members.pop(rid, None)
        gone = {mid for mid, m in self.messages.items() if m["room_id"] == rid}
        for mid in gone:
            del self.messages[mid]
        self.reactions = [r for r in self.reactions if r["message_id"] not in gone]

    # -- routes --------------------------------------------------------

    def _auth(self, _, body, params):
        action = body.get("action")
        if action == "register":
            if any(u["email"] == body.get("email") for u in self.users.values()):
                raise HttpError(400, "User already exists")
            uid = self.add_user(body["name"], body["email"], body["password"])
            return 201, {"user": self.public_user(uid), "token": self.token_for(uid)}
        if action == "login":
            user = next((u for u in self.users.values() if u["email"] == body.get("email")), None)
            if user is None or user["password"] != body.get("password"):
                raise HttpError(401, "Invalid credentials")
            user["online"] = True
            return 200, {"user": self.public_user(user["id"]), "token": self.token_for(user["id"])}
        if action == "logout":
            return 200, {"message": "Logged out successfully"}
        raise HttpError(400, "Invalid action")

    def _get_profile(self, uid, body, params):
        return 200, {"user": self.public_user(uid)}

    def _update_profile(self, uid, body, params):
        if body.get("name") is None and body.get("avatar") is None:
            raise HttpError(400, "No fields to update")
        for field in ("name", "avatar"):
            if body.get(field) is not None:
                self.users[uid][field] = body[field]
        return 200, {"user": self.public_user(uid)}

    def _search_users(self, uid, body, params):
        query = body.get("query", "").lower()
        found = [
            self.public_user(u["id"]) for u in self.users.values()
            if u["id"] != uid and (query in u["name"].lower() or query in u["email"].lower())
        ]
        return 200, {"users": found[: body.get("limit", 20)]}

    def _list_rooms(self, uid, body, params):
        rooms = [self.room_view(rid, uid) for rid, m in self.members.items() if uid in m]
        return 200, {"rooms": rooms}

    def _create_room(self, uid, body, params):
        name = (body.get("name") or "").strip()
        if not name:
            raise HttpError(400, "Room name is required")
        if body.get("type") == "dm":
            raise HttpError(400, "Use /create-dm to start a direct message")
        rid = self.add_room(name, uid, body.get("memberIds", []), body.get("type", "group"))
        self.rooms[rid]["description"] = body.get("description")
        return 201, {"room": self.room_view(rid, uid)}

    def _join_room(self, uid, body, params):
        rid = body.get("roomId")
        if rid not in self.rooms:
            raise HttpError(404, "Room not found")
        if uid in self.members[rid]:
            raise HttpError(400, "Already a member of this room")
        self.members[rid][uid] = self.now()
        return 200, {"message": "Successfully joined room"}

    def _leave_room(self, uid, body, params):
        rid = body.get("roomId")
        if rid not in self.rooms or uid not in self.members[rid]:
            raise HttpError(404, "Not a member of this room")
        room = self.rooms[rid]
        plan = plan_departure(room["type"], room["admin_id"], uid, list(self.members[rid]))
        if plan.delete_room:
            self._drop_room(rid)
            return 200, {"success": True, "deleted": True, "message": "Room deleted as you were the last member"}
        del self.members[rid][uid]
        if plan.new_admin_id is not None:
            room["admin_id"] = plan.new_admin_id
        return 200, {"success": True, "deleted": False, "message": "Successfully left room"}

    def _create_dm(self, uid, body, params):
        target = body.get("targetUserId")
        if target not in self.users:
            raise HttpError(404, "Target user not found")
        for rid, room in self.rooms.items():
            if room["type"] == "dm" and set(self.members[rid]) == {uid, target}:
                return 200, {"room": self.room_view(rid, uid), "is_new": False}
        rid = self.add_room(f"DM: {self.users[target]['name']}", uid, [target], "dm")
        return 200, {"room": self.room_view(rid, uid), "is_new": True}

    def _delete_room(self, uid, body, params):
        rid = body.get("roomId")
        if rid not in self.rooms:
            raise HttpError(404, "Room not found")
        room = self.rooms[rid]
        if not can_delete_room(room["type"], room["admin_id"], uid):
            raise HttpError(403, "Only the room admin can delete group rooms")
        self._drop_room(rid)
        return 200, {"message": "Room deleted successfully", "room_id": rid, "deleted_by": uid}

    def _list_members(self, uid, body, params):
        rid = int(params["roomId"])
        self._require_member(rid, uid)
        admin = self.rooms[rid]["admin_id"]
        members = [
            {**self.public_user(m), "joined_at": joined, "is_admin": m == admin}
            for m, joined in self.members[rid].items()
        ]
        return 200, {"success": True, "members": members, "room": self.room_view(rid, uid)}

    def _add_member(self, uid, body, params):
        rid, new = body["roomId"], body["userId"]
        self._require_member(rid, uid)
        if new not in self.users:
            raise HttpError(404, "User not found")
        if new in self.members[rid]:
            raise HttpError(400, "User is already a member of this room")
        self.members[rid][new] = self.now()
        return 200, {"message": "User added to room successfully", "user": self.public_user(new)}

    def _remove_member(self, uid, body, params):
        rid, member = int(params["roomId"]), int(params["userId"])
        self._require_member(rid, uid)
        if self.rooms[rid]["admin_id"] != uid:
            raise HttpError(403, "Only admin can remove members")
        if self.rooms[rid]["type"] == "dm":
            raise HttpError(403, "Cannot remove members from a direct message room")
        if member not in self.members[rid]:
            raise HttpError(404, "User is not a member of this room")
        del self.members[rid][member]
        return 200, {"success": True, "message": "User removed from room successfully"}

    def _transfer_admin(self, uid, body, params):
        rid, new_admin = body["roomId"], body["newAdminId"]
        if rid not in self.rooms:
            raise HttpError(404, "Room not found")
        if self.rooms[rid]["admin_id"] != uid:
            raise HttpError(403, "Only admin can transfer admin role")
        if new_admin not in self.members[rid]:
            raise HttpError(400, "New admin must be a member of the room")
        self.rooms[rid]["admin_id"] = new_admin
        return 200, {"success": True, "message": "Admin role transferred successfully"}

    def _get_messages(self, uid, body, params):
        rid = int(params["roomId"])
        self._require_member(rid, uid)
        mids = sorted(mid for mid, m in self.messages.items() if m["room_id"] == rid)
        return 200, {"messages": [self.message_view(mid) for mid in mids]}

    def _send_message(self, uid, body, params):
        rid = body.get("roomId")
        self._require_member(rid, uid)
        mid = self.add_message(rid, uid, body["content"], body.get("type", "text"))
        return 201, {"success": True, "message": self.message_view(mid)}

    def _mark_messages(self, uid, body, params):
        updated = 0
        for mid in body.get("messageIds") or []:
            message = self.messages.get(mid)
            if message and uid not in message["read_by"]:
                message["read_by"].append(uid)
                updated += 1
        return 200, {"updated_count": updated, "message": "Messages marked as read"}

    def _delete_message(self, uid, body, params):
        mid = int(params["messageId"])
        if mid not in self.messages:
            raise HttpError(404, "Message not found")
        if self.messages[mid]["user_id"] != uid:
            raise HttpError(403, "Only the author can delete this message")
        del self.messages[mid]
        self.reactions = [r for r in self.reactions if r["message_id"] != mid]
        return 200, {"success": True, "message_id": mid}

    def _search_messages(self, uid, body, params):
        rid, q = int(params["roomId"]), params["q"].lower()
        self._require_member(rid, uid)
        hits = [
            mid for mid, m in self.messages.items()
            if m["room_id"] == rid and m["type"] == "text" and q in m["content"].lower()
        ]
        hits.sort(key=lambda mid: self.messages[mid]["created_at"], reverse=True)
        return 200, {"messages": [self.message_view(mid) for mid in hits[:50]]}

    def _forward_message(self, uid, body, params):
        original = self.messages.get(body.get("messageId"))
        if original is None:
            raise HttpError(404, "Message not found")
        if uid not in self.members.get(original["room_id"], {}):
            raise HttpError(403, "Access denied to original message")
        target = body.get("targetRoomId")
        if uid not in self.members.get(target, {}):
            raise HttpError(403, "Access denied to target room")
        author = self.users[original["user_id"]]["name"]
        mid = self.add_message(target, uid, forwarded_content(author, original["content"]))
        return 201, {"success": True, "message": self.message_view(mid)}

    def _mark_read(self, uid, body, params):
        rid = body.get("roomId")
        self._require_member(rid, uid)
        self.last_read[(rid, uid)] = self.now()
        return 200, {"message": "Room marked as read", "room_id": rid, "user_id": uid}

    def _get_reactions(self, uid, body, params):
        if "messageId" in params:
            mid = int(params["messageId"])
            rows = [self._reaction_row(r) for r in self.reactions if r["message_id"] == mid]
            aggregates = [a.model_dump(mode="json") for a in group_reactions(rows)]
            return 200, {"success": True, "reactions": aggregates, "total": len(rows)}
        rid = int(params["roomId"])
        self._require_member(rid, uid)
        room_messages = {mid for mid, m in self.messages.items() if m["room_id"] == rid}
        rows = [self._reaction_row(r) for r in self.reactions if r["message_id"] in room_messages]
        grouped = {
            str(mid): [a.model_dump(mode="json") for a in aggregates]
            for mid, aggregates in group_by_message(rows).items()
        }
        return 200, {"success": True, "reactions": grouped}

    def _add_reaction(self, uid, body, params):
        mid, emoji = body.get("messageId"), body.get("emoji")
        if mid not in self.messages:
            raise HttpError(404, "Message not found")
        self._require_member(self.messages[mid]["room_id"], uid)
        if self._find_reaction(mid, uid, emoji) is not None:
            return 200, {"success": True, "action": "already_exists", "message": "Reaction already exists"}
        self.add_reaction(mid, uid, emoji)
        return 201, {"success": True, "action": "added", "reaction": self._find_reaction(mid, uid, emoji)}

    def _remove_reaction(self, uid, body, params):
        mid, emoji = int(params["messageId"]), params["emoji"]
        row = self._find_reaction(mid, uid, emoji)
        if row is None:
            raise HttpError(404, "Reaction not found")
        self.reactions.remove(row)
        return 200, {"success": True, "action": "removed", "reaction": row}

    def _upload_file(self, uid, body, params):
        rid = body.get("roomId")
        raw = decode_file_data(body["fileData"])
        self._require_member(rid, uid)
        file_id = next(self._ids)
        descriptor = {
            "id": file_id,
            "name": body["fileName"],
            "type": body.get("fileType"),
            "size": len(raw),
            "url": f"data:{body.get('fileType')};base64,{body['fileData']}",
        }
        mid = self.add_message(rid, uid, json.dumps({"file": descriptor}), "file")
        self.messages[mid]["file_id"] = file_id
        return 201, {"success": True, "message": self.message_view(mid)}

    def _get_presence(self, uid, body, params):
        ids = list(self.users)
        if "roomId" in params:
            rid = int(params["roomId"])
            self._require_member(rid, uid)
            ids = list(self.members[rid])
        users = [self.public_user(i) for i in ids]
        users.sort(key=lambda u: u["last_seen"] or BASE_TIME, reverse=True)
        users.sort(key=lambda u: u["online"], reverse=True)
        return 200, {"users": users}

    def _set_presence(self, uid, body, params):
        online = body.get("status") == "online"
        self.users[uid]["online"] = online
        self.users[uid]["last_seen"] = self.now()
        return 200, {"message": "Presence updated successfully", "status": "online" if online else "offline"}

    def _heartbeat(self, uid, body, params):
        self.users[uid]["last_seen"] = self.now()
        return 200, {"message": "Heartbeat updated"}


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Cannot serialize {type(value).__name__}")


@pytest.fixture
def server():
    return FakeChatServer()


@pytest.fixture
def alice(server):
    return server.add_user("Alice")


@pytest.fixture
def bob(server):
    return server.add_user("Bob")


@pytest.fixture
def client_config():
    return ClientConfig(
        base_url="http://testserver",
        room_poll_interval=0.05,
        room_fetch_min_interval=0.0,
        message_poll_interval=0.05,
        reaction_poll_interval=0.05,
        heartbeat_interval=0.05,
        reaction_reconcile_delay=0.01,
    )


@pytest_asyncio.fixture
async def make_client(server, client_config):
    """Factory for a signed-in ChatClient talking to ``server``."""
    clients = []

    def _make(user_id=None, token=None):
        if user_id is not None and token is None:
            token = server.token_for(user_id)
        client = ChatClient(config=client_config, token=token, transport=server.transport())
        if user_id in server.users:
            client.state.user = User.model_validate(server.public_user(user_id))
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.close()


class FakeConnection:
    def transaction(self):
        return contextlib.nullcontext()


class FakePool:
    def __init__(self):
        self.conn = FakeConnection()

    def acquire(self):
        return contextlib.nullcontext(self.conn)


class FakePoolManager:
    """Stands in for PoolManager when the db query functions are patched out."""

    def __init__(self):
        self.pool = FakePool()
        self.connected = True

    async def init(self, config):
        pass

    async def close(self):
        pass


@pytest.fixture
def pool_manager():
    return FakePoolManager()
