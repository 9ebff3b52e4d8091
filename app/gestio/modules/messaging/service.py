"""
Conversations, participants and messages.

Unread counts are derived from each participant's `last_read_at`: a message is
unread for a user when it was sent by someone else after that timestamp.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, or_

from app.gestio.audit import log_action
from app.gestio.errors import AccessDenied, BadRequest, NotFound
from app.gestio.models import User
from app.gestio.modules.messaging.models import Conversation, ConversationParticipant, Message
from app.gestio.rbac import is_admin, is_super_admin

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gestio.modules.messaging.schemas import ConversationIn, ConversationUpdateIn, MessageIn

DEFAULT_NAME = "New conversation"


def participant_of(conversation: Conversation, user_id: int) -> ConversationParticipant | None:
    for p in conversation.participants:
        if p.user_id == user_id:
            return p
    return None


def require_participant(conversation: Conversation, user: User) -> ConversationParticipant:
    participant = participant_of(conversation, user.id)
    if participant is None:
        raise AccessDenied("You are not a participant in this conversation")
    return participant


def unread_filter(me: Any, user_id: int):
    """Messages unread by `user_id`; `me` is that user's participant row (or alias)."""
    return and_(
        or_(Message.sender_id.is_(None), Message.sender_id != user_id),
        or_(me.last_read_at.is_(None), Message.created_at > me.last_read_at),
    )


def unread_counts(s: "Session", user_id: int, conversation_ids: list[int]) -> dict[int, int]:
    counts = dict.fromkeys(conversation_ids, 0)
    if conversation_ids:
        rows = (
            s.query(Message.conversation_id, func.count(Message.id))
            .join(
                ConversationParticipant,
                and_(
                    ConversationParticipant.conversation_id == Message.conversation_id,
                    ConversationParticipant.user_id == user_id,
                ),
            )
            .filter(Message.conversation_id.in_(conversation_ids), unread_filter(ConversationParticipant, user_id))
            .group_by(Message.conversation_id)
        )
        counts.update({conversation_id: n for conversation_id, n in rows})
    return counts


def last_messages(s: "Session", conversation_ids: list[int]) -> dict[int, Message]:
    if not conversation_ids:
        return {}
    latest = (
        s.query(func.max(Message.id))
        .filter(Message.conversation_id.in_(conversation_ids))
        .group_by(Message.conversation_id)
    )
    return {m.conversation_id: m for m in s.query(Message).filter(Message.id.in_(latest.scalar_subquery()))}


def _load_users(s: "Session", user_ids: set[int], actor: User) -> dict[int, User]:
    users = {u.id: u for u in s.query(User).filter(User.id.in_(user_ids))}
    missing = sorted(user_ids - set(users))
    if missing:
        raise NotFound("User not found", extra={"missingUserIds": missing})
    if not is_super_admin(actor):
        for u in users.values():
            if u.company_id != actor.company_id:
                raise AccessDenied("Conversations are limited to members of your company")
    return users


def _find_direct(s: "Session", a: int, b: int) -> Conversation | None:
    mine = s.query(ConversationParticipant.conversation_id).filter(ConversationParticipant.user_id == a)
    theirs = s.query(ConversationParticipant.conversation_id).filter(ConversationParticipant.user_id == b)
    return (
        s.query(Conversation)
        .filter(
            Conversation.is_direct_message.is_(True),
            Conversation.id.in_(mine.scalar_subquery()),
            Conversation.id.in_(theirs.scalar_subquery()),
        )
        .order_by(Conversation.id.asc())
        .first()
    )


def _system_message(s: "Session", conversation: Conversation, actor: User, content: str, now: datetime) -> Message:
    msg = Message(
        conversation_id=conversation.id,
        sender_id=actor.id,
        content=content,
        is_system_message=True,
        created_at=now,
    )
    s.add(msg)
    conversation.updated_at = now
    return msg


def create_conversation(s: "Session", payload: "ConversationIn", user: User) -> tuple[Conversation, bool]:
    """Returns (conversation, created); an existing direct conversation is reused."""
    member_ids = set(payload.participants) | {user.id}
    users = _load_users(s, member_ids, user)

    if payload.is_direct_message:
        if len(member_ids) != 2:
            raise BadRequest("A direct conversation has exactly two participants")
        other_id = next(uid for uid in member_ids if uid != user.id)
        existing = _find_direct(s, user.id, other_id)
        if existing is not None:
            return existing, False
        name = payload.name or users[other_id].name or users[other_id].email
    else:
        name = payload.name or DEFAULT_NAME

    now = datetime.utcnow()
    conversation = Conversation(
        name=name,
        is_direct_message=payload.is_direct_message,
        created_by_user_id=user.id,
        created_at=now,
        updated_at=now,
    )
    for uid in sorted(member_ids):
        conversation.participants.append(
            ConversationParticipant(user_id=uid, joined_at=now, last_read_at=now if uid == user.id else None)
        )
    s.add(conversation)
    s.flush()
    if payload.initial_message:
        s.add(Message(conversation_id=conversation.id, sender_id=user.id, content=payload.initial_message, created_at=now))
    log_action(
        s,
        user,
        "CREATE",
        "CONVERSATION",
        conversation.id,
        {"participants": sorted(member_ids), "isDirectMessage": conversation.is_direct_message},
    )
    return conversation, True


def mark_read(participant: ConversationParticipant) -> None:
    participant.last_read_at = datetime.utcnow()


def update_conversation(s: "Session", conversation: Conversation, payload: "ConversationUpdateIn", user: User) -> Conversation:
    require_participant(conversation, user)
    add_ids = set(payload.add_participants) - {p.user_id for p in conversation.participants}
    remove_ids = set(payload.remove_participants) & {p.user_id for p in conversation.participants}
    if conversation.is_direct_message and (add_ids or remove_ids):
        raise BadRequest("Participants of a direct conversation cannot be changed")
    if remove_ids and len(conversation.participants) - len(remove_ids) + len(add_ids) < 1:
        raise BadRequest("A conversation must keep at least one participant")

    now = datetime.utcnow()
    changes: dict[str, Any] = {}
    if payload.name and payload.name != conversation.name:
        changes["name"] = {"old": conversation.name, "new": payload.name}
        conversation.name = payload.name
    if add_ids:
        added = _load_users(s, add_ids, user)
        for uid in sorted(add_ids):
            conversation.participants.append(ConversationParticipant(user_id=uid, joined_at=now))
        names = ", ".join(added[uid].name or added[uid].email for uid in sorted(add_ids))
        _system_message(s, conversation, user, f"{user.name or user.email} added {names}", now)
        changes["addedParticipants"] = sorted(add_ids)
    if remove_ids:
        removed = [p for p in conversation.participants if p.user_id in remove_ids]
        names = ", ".join(p.user.name or p.user.email for p in removed)
        for p in removed:
            conversation.participants.remove(p)
        _system_message(s, conversation, user, f"{user.name or user.email} removed {names}", now)
        changes["removedParticipants"] = sorted(remove_ids)
    conversation.updated_at = now
    log_action(s, user, "UPDATE", "CONVERSATION", conversation.id, {"changes": changes})
    return conversation


def _delete_everything(s: "Session", conversation: Conversation) -> None:
    s.query(Message).filter(Message.conversation_id == conversation.id).delete(synchronize_session=False)
    s.delete(conversation)


def leave_or_delete(s: "Session", conversation: Conversation, user: User) -> str:
    """
    Direct conversations: the caller leaves. Admins delete the conversation
    with its messages. Everyone else leaves and a system message is posted.
    Returns "deleted" or "left".
    """
    participant = participant_of(conversation, user.id)
    if participant is None and not is_super_admin(user):
        raise AccessDenied("You are not a participant in this conversation")

    if is_admin(user) and not conversation.is_direct_message:
        _delete_everything(s, conversation)
        log_action(s, user, "DELETE", "CONVERSATION", conversation.id, {"name": conversation.name})
        return "deleted"

    if participant is None:
        # Super admin outside a direct conversation has nothing to leave.
        raise BadRequest("You are not a participant in this conversation")
    conversation.participants.remove(participant)
    if not conversation.participants:
        _delete_everything(s, conversation)
        log_action(s, user, "DELETE", "CONVERSATION", conversation.id, {"name": conversation.name})
        return "deleted"
    if not conversation.is_direct_message:
        _system_message(s, conversation, user, f"{user.name or user.email} left the conversation", datetime.utcnow())
    log_action(s, user, "UPDATE", "CONVERSATION", conversation.id, {"left": user.id})
    return "left"


def post_message(s: "Session", conversation: Conversation, payload: "MessageIn", user: User) -> Message:
    participant = require_participant(conversation, user)
    if payload.is_system_message and not is_admin(user):
        raise AccessDenied("Only administrators can post system messages")
    now = datetime.utcnow()
    msg = Message(
        conversation_id=conversation.id,
        sender_id=user.id,
        content=payload.content,
        attachments=payload.attachments,
        is_system_message=payload.is_system_message,
        created_at=now,
    )
    s.add(msg)
    conversation.updated_at = now
    participant.last_read_at = now
    s.flush()
    log_action(s, user, "CREATE", "MESSAGE", msg.id, {"conversationId": conversation.id})
    return msg
