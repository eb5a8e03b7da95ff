from typing import Any, Callable, Dict, List, Optional

from flask import Blueprint, current_app, request
from flask_login import current_user, login_required
from flask_socketio import join_room, leave_room

from rapport import db, socketio
from rapport.chat.messaging import (
    direct_history,
    group_history,
    send_direct_message,
    send_group_message,
)
from rapport.relations import RefreshCoordinator, RelationError, RelationStore
from rapport.relations.coordinator import (
    AcceptFriendRequest,
    AcceptGroupInvite,
    CreateGroup,
    DeclineFriendRequest,
    DeclineGroupInvite,
    Event,
    InviteToGroup,
    LeaveGroup,
    Refresh,
    RemoveFriend,
    RetractFriendRequest,
    SendFriendRequest,
)

chat_bp = Blueprint("chat", __name__)

# One coordinator per connected client, keyed by Socket.IO session id.
_coordinators: Dict[str, RefreshCoordinator] = {}


def _store() -> RelationStore:
    return RelationStore(db.session)


def _coordinator() -> RefreshCoordinator:
    coordinator = _coordinators.get(request.sid)
    if coordinator is None or coordinator.viewer_id != current_user.id:
        coordinator = RefreshCoordinator(_store(), current_user.id)
        coordinator.tick()
        _coordinators[request.sid] = coordinator
    return coordinator


def _int_field(data: Any, key: str) -> Optional[int]:
    if not isinstance(data, dict):
        return None
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _ui_settings() -> Dict[str, Any]:
    return {
        "contactsPollSeconds": current_app.config["CONTACTS_POLL_SECONDS"],
        "chatPollSeconds": current_app.config["CHAT_POLL_SECONDS"],
    }


def _apply(event: Event, describe: Optional[Callable[[Any], Dict[str, Any]]] = None) -> Dict[str, Any]:
    coordinator = _coordinator()
    try:
        result = coordinator.dispatch(event)
    except RelationError as exc:
        return {"ok": False, "error": exc.message, "code": exc.code, "state": coordinator.snapshot()}
    except Exception:
        current_app.logger.exception("Failed to handle %s.", type(event).__name__)
        return {"ok": False, "error": "Something went wrong, please try again."}
    payload: Dict[str, Any] = {"ok": True, "state": coordinator.snapshot()}
    if describe is not None:
        payload.update(describe(result))
    return payload


def _resolve_target(data: Any) -> Optional[int]:
    target_id = _int_field(data, "user_id")
    if target_id is not None:
        return target_id
    email = (data.get("email") or "").strip() if isinstance(data, dict) else ""
    if not email:
        return None
    user = _store().find_user_by_email(email)
    return user.id if user else None


@chat_bp.route("/api/contacts")
@login_required
def contacts():
    coordinator = RefreshCoordinator(_store(), current_user.id)
    if not coordinator.tick():
        return {"ok": False, "error": "Unable to load contacts."}, 503
    return {"ok": True, "state": coordinator.snapshot(), "ui": _ui_settings()}


@socketio.on("initialize")
def handle_initialize():
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    join_room(f"user_{current_user.id}")
    coordinator = RefreshCoordinator(_store(), current_user.id)
    coordinator.tick()
    _coordinators[request.sid] = coordinator
    for group in coordinator.groups.views.member:
        join_room(f"group_{group.id}")
    return {"ok": True, "state": coordinator.snapshot(), "ui": _ui_settings()}


@socketio.on("disconnect")
def handle_disconnect(*_args):
    _coordinators.pop(request.sid, None)


@socketio.on("contacts:refresh")
def handle_contacts_refresh(_data=None):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    coordinator = _coordinator()
    ok = coordinator.dispatch(Refresh())
    payload: Dict[str, Any] = {"ok": ok, "state": coordinator.snapshot()}
    if not ok:
        payload["error"] = "Unable to refresh contacts."
    return payload


@socketio.on("friend:send_request")
def handle_friend_request(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    target_id = _resolve_target(data)
    if target_id is None:
        return {"ok": False, "error": "User not found"}
    return _apply(SendFriendRequest(target_id))


@socketio.on("friend:respond")
def handle_friend_respond(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    other_id = _int_field(data, "user_id")
    action = (data.get("action") or "").strip().lower() if isinstance(data, dict) else ""
    if other_id is None or action not in {"accept", "decline"}:
        return {"ok": False, "error": "Invalid friend request response."}
    if action == "accept":
        return _apply(AcceptFriendRequest(other_id), lambda _: {"status": "accepted"})
    return _apply(DeclineFriendRequest(other_id), lambda _: {"status": "declined"})


@socketio.on("friend:cancel")
def handle_friend_cancel(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    other_id = _int_field(data, "user_id")
    if other_id is None:
        return {"ok": False, "error": "Invalid request"}
    return _apply(RetractFriendRequest(other_id))


@socketio.on("friend:remove")
def handle_friend_remove(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    other_id = _int_field(data, "user_id")
    if other_id is None:
        return {"ok": False, "error": "Invalid friend selection"}
    return _apply(RemoveFriend(other_id))


@socketio.on("group:create")
def handle_group_create(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    name = data.get("name") if isinstance(data, dict) else None
    payload = _apply(CreateGroup(name or ""), lambda group: {"group": group.to_dict()})
    if not payload["ok"]:
        return payload
    group_id = payload["group"]["id"]
    join_room(f"group_{group_id}")
    raw_invitees = (data.get("user_ids") if isinstance(data, dict) else None) or []
    if not isinstance(raw_invitees, (list, tuple)):
        raw_invitees = [raw_invitees]
    invited: List[int] = []
    failed: List[Dict[str, Any]] = []
    for raw in raw_invitees:
        invitee_id = _int_field({"user_id": raw}, "user_id")
        if invitee_id is None:
            continue
        result = _apply(InviteToGroup(invitee_id, group_id))
        if result["ok"]:
            invited.append(invitee_id)
        else:
            failed.append({"user_id": invitee_id, "error": result["error"]})
    payload["invited"] = invited
    payload["failed_invites"] = failed
    payload["state"] = _coordinator().snapshot()
    return payload


@socketio.on("group:invite")
def handle_group_invite(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    group_id = _int_field(data, "group_id")
    target_id = _resolve_target(data)
    if group_id is None:
        return {"ok": False, "error": "Group ID required"}
    if target_id is None:
        return {"ok": False, "error": "User not found"}
    return _apply(InviteToGroup(target_id, group_id))


@socketio.on("group:respond")
def handle_group_respond(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    group_id = _int_field(data, "group_id")
    action = (data.get("action") or "").strip().lower() if isinstance(data, dict) else ""
    if group_id is None or action not in {"accept", "decline"}:
        return {"ok": False, "error": "Invalid invitation response."}
    if action == "accept":
        payload = _apply(AcceptGroupInvite(group_id), lambda _: {"status": "accepted"})
        if payload["ok"]:
            join_room(f"group_{group_id}")
        return payload
    return _apply(DeclineGroupInvite(group_id), lambda deleted: {"status": "declined", "group_deleted": deleted})


@socketio.on("group:leave")
def handle_group_leave(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    group_id = _int_field(data, "group_id")
    if group_id is None:
        return {"ok": False, "error": "Group ID required"}
    payload = _apply(LeaveGroup(group_id), lambda deleted: {"group_deleted": deleted})
    if payload["ok"]:
        leave_room(f"group_{group_id}")
    return payload


def _serialize_history(messages) -> Dict[str, Any]:
    sender_ids = sorted({message.sender_id for message in messages})
    senders = _store().list_users(sender_ids) if sender_ids else []
    return {
        "messages": [message.to_dict() for message in messages],
        "senders": [sender.to_public_dict() for sender in senders],
    }


@socketio.on("chat:send")
def handle_chat_send(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    body = data.get("body") if isinstance(data, dict) else None
    group_id = _int_field(data, "group_id")
    receiver_id = _int_field(data, "user_id")
    try:
        if group_id is not None:
            message = send_group_message(_store(), current_user.id, group_id, body)
        elif receiver_id is not None:
            message = send_direct_message(_store(), current_user.id, receiver_id, body)
        else:
            return {"ok": False, "error": "Recipient required"}
    except RelationError as exc:
        return {"ok": False, "error": exc.message, "code": exc.code}
    return {"ok": True, "message": message.to_dict()}


@socketio.on("chat:history")
def handle_chat_history(data):
    if not current_user.is_authenticated:
        return {"ok": False, "error": "Unauthorized"}
    group_id = _int_field(data, "group_id")
    other_id = _int_field(data, "user_id")
    try:
        if group_id is not None:
            messages = group_history(_store(), current_user.id, group_id)
        elif other_id is not None:
            messages = direct_history(_store(), current_user.id, other_id)
        else:
            return {"ok": False, "error": "Conversation required"}
    except RelationError as exc:
        return {"ok": False, "error": exc.message, "code": exc.code}
    payload = {"ok": True, "group_id": group_id, "user_id": other_id if group_id is None else None}
    payload.update(_serialize_history(messages))
    return payload
