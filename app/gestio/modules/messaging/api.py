from __future__ import annotations

from flask import Blueprint
from sqlalchemy import and_, exists, or_
from sqlalchemy.orm import aliased

from app.gestio.constants import CREATE, DELETE, READ, UPDATE
from app.gestio.db import db_session
from app.gestio.errors import BadRequest, NotFound
from app.gestio.modules.messaging.models import Conversation, ConversationParticipant, Message
from app.gestio.modules.messaging.schemas import (
    ConversationIn,
    ConversationOut,
    ConversationUpdateIn,
    MessageIn,
    MessageOut,
)
from app.gestio.modules.messaging.service import (
    create_conversation,
    last_messages,
    leave_or_delete,
    mark_read,
    post_message,
    require_participant,
    unread_counts,
    unread_filter,
    update_conversation,
)
from app.gestio.rbac import current_user, require_permission
from app.gestio.schemas import dump, dump_many
from app.gestio.utils import PageRequest, arg_bool, arg_int, arg_str, envelope, like, page_request, paginate, parse_body

bp = Blueprint("messaging", __name__)


def _get_conversation(s, conversation_id: int) -> Conversation:
    conversation = s.get(Conversation, conversation_id)
    if not conversation:
        raise NotFound("Conversation not found")
    return conversation


def _messages_page(s, conversation_id: int, pr: PageRequest) -> tuple[list[Message], dict[str, int]]:
    q = s.query(Message).filter(Message.conversation_id == conversation_id)
    return paginate(q.order_by(Message.created_at.asc(), Message.id.asc()), pr)


@bp.get("/conversations")
@require_permission(READ, "CONVERSATION")
def conversations_list():
    user = current_user()
    s = db_session()
    me = aliased(ConversationParticipant)
    q = s.query(Conversation).join(me, and_(me.conversation_id == Conversation.id, me.user_id == user.id))

    if arg_bool("onlyDirect"):
        q = q.filter(Conversation.is_direct_message.is_(True))
    if arg_bool("onlyUnread"):
        q = q.filter(exists().where(Message.conversation_id == Conversation.id, unread_filter(me, user.id)))
    with_user_id = arg_int("withUserId")
    if with_user_id is not None:
        other = aliased(ConversationParticipant)
        q = q.filter(
            exists().where(other.conversation_id == Conversation.id, other.user_id == with_user_id)
        )
    search = arg_str("search")
    if search:
        term = like(search)
        q = q.filter(
            or_(
                Conversation.name.ilike(term),
                exists().where(Message.conversation_id == Conversation.id, Message.content.ilike(term)),
            )
        )

    rows, pagination = paginate(q.order_by(Conversation.updated_at.desc(), Conversation.id.desc()), page_request())
    ids = [c.id for c in rows]
    unread = unread_counts(s, user.id, ids)
    latest = last_messages(s, ids)
    items = [
        dump(
            ConversationOut,
            c,
            unreadCount=unread[c.id],
            lastMessage=dump(MessageOut, latest[c.id]) if c.id in latest else None,
        )
        for c in rows
    ]
    return envelope("items", items, pagination)


@bp.post("/conversations")
@require_permission(CREATE, "CONVERSATION")
def conversations_create():
    payload = parse_body(ConversationIn)
    s = db_session()
    conversation, created = create_conversation(s, payload, current_user())
    s.commit()
    return dump(ConversationOut, conversation), 201 if created else 200


@bp.get("/conversations/<int:conversation_id>")
@require_permission(READ, "CONVERSATION")
def conversations_detail(conversation_id: int):
    user = current_user()
    s = db_session()
    conversation = _get_conversation(s, conversation_id)
    participant = require_participant(conversation, user)

    pr = page_request(50, page_arg="messagesPage", limit_arg="messagesLimit")
    messages, pagination = _messages_page(s, conversation.id, pr)

    mark_read(participant)
    s.commit()
    return dump(
        ConversationOut,
        conversation,
        messages=dump_many(MessageOut, messages),
        messagesPagination=pagination,
    )


@bp.patch("/conversations/<int:conversation_id>")
@require_permission(UPDATE, "CONVERSATION")
def conversations_update(conversation_id: int):
    payload = parse_body(ConversationUpdateIn)
    s = db_session()
    conversation = _get_conversation(s, conversation_id)
    update_conversation(s, conversation, payload, current_user())
    s.commit()
    return dump(ConversationOut, conversation)


@bp.delete("/conversations/<int:conversation_id>")
@require_permission(DELETE, "CONVERSATION")
def conversations_delete(conversation_id: int):
    s = db_session()
    conversation = _get_conversation(s, conversation_id)
    outcome = leave_or_delete(s, conversation, current_user())
    s.commit()
    if outcome == "deleted":
        return {"message": "Conversation deleted"}
    return {"message": "You left the conversation"}


@bp.get("/messages")
@require_permission(READ, "MESSAGE")
def messages_list():
    conversation_id = arg_int("conversationId")
    if conversation_id is None:
        raise BadRequest("conversationId is required", details={"conversationId": ["Required"]})
    s = db_session()
    conversation = _get_conversation(s, conversation_id)
    require_participant(conversation, current_user())
    rows, pagination = _messages_page(s, conversation.id, page_request(default_limit=50))
    return envelope("items", dump_many(MessageOut, rows), pagination)


@bp.post("/messages")
@require_permission(CREATE, "MESSAGE")
def messages_create():
    payload = parse_body(MessageIn)
    s = db_session()
    conversation = _get_conversation(s, payload.conversation_id)
    msg = post_message(s, conversation, payload, current_user())
    s.commit()
    return dump(MessageOut, msg), 201
