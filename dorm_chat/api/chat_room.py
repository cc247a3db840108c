import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query

from dorm_chat.core.errors import AuthorizationException, chat_room_not_found_error
from dorm_chat.models.chat_rooms import RoomKind
from dorm_chat.models.identity import Identity
from dorm_chat.schemas.chat_room import (
    ChatMessageHistory,
    ChatMessageItem,
    ChatRoomList,
    ChatRoomSummary,
    MarkReadResponse,
)
from dorm_chat.api.dependencies import get_current_admin, get_gateway, get_optional_identity
from dorm_chat.websockets.gateway import ChatGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.get("/rooms", response_model=ChatRoomList, response_model_by_alias=True)
async def list_chat_rooms(
    admin: Identity = Depends(get_current_admin),
    gateway: ChatGateway = Depends(get_gateway)
):
    """
    관리자 대화 목록을 최근 활동 순으로 조회합니다.

    메모리 레지스트리의 활성 방을 우선하고, 저장소에만 남아 있는 방을 합칩니다.
    """
    rooms: Dict[str, ChatRoomSummary] = {}

    for record, unread in await gateway.store.list_rooms_ordered_by_activity():
        rooms[record.room_id] = ChatRoomSummary(
            room_id=record.room_id,
            kind=record.kind.value,
            display_name=record.display_name,
            last_activity_at=record.last_message_at or record.created_at,
            unread_count=unread,
            participant_count=0,
            tenant_id=record.tenant_id,
            is_live=False,
        )

    for summary in gateway.registry.list_active():
        rooms[summary.room_id] = summary

    ordered = sorted(rooms.values(), key=lambda room: room.last_activity_at, reverse=True)
    return ChatRoomList(rooms=ordered, total=len(ordered))


@router.get("/rooms/{room_id}/messages", response_model=ChatMessageHistory, response_model_by_alias=True)
async def get_room_messages(
    room_id: str,
    limit: int = Query(50, ge=1, le=200, description="페이지당 메시지 수"),
    skip: int = Query(0, ge=0, description="건너뛸 메시지 수"),
    identity: Optional[Identity] = Depends(get_optional_identity),
    gateway: ChatGateway = Depends(get_gateway)
):
    """
    대화 기록 조회 (재접속 시 기록 복원용).

    게스트 방은 세션 토큰(room_id) 자체가 접근 권한입니다.
    입주자 방은 관리자 또는 해당 입주자만 조회할 수 있습니다.
    """
    record = await gateway.store.get_room(room_id)
    if record is None:
        raise chat_room_not_found_error(room_id)

    if record.kind != RoomKind.GUEST:
        allowed = identity is not None and (
            identity.is_admin
            or (identity.is_tenant and identity.subject_id == record.tenant_id)
        )
        if not allowed:
            raise AuthorizationException("You do not have access to this chat room")

    stored = await gateway.store.list_messages(room_id, limit=limit, skip=skip)
    total = await gateway.store.count_messages(room_id)

    messages = [
        ChatMessageItem(
            id=item.message.id,
            room_id=item.message.room_id,
            sender_id=item.message.sender_id,
            sender_name=item.message.sender_name,
            message=item.message.body,
            timestamp=item.message.timestamp,
            is_admin=item.message.is_admin,
            is_read=item.is_read,
            read_at=item.read_at,
        )
        for item in stored
    ]
    return ChatMessageHistory(
        room_id=room_id,
        messages=messages,
        total=total,
        limit=limit,
        skip=skip,
        has_next=skip + len(messages) < total,
    )


@router.post("/rooms/{room_id}/read", response_model=MarkReadResponse, response_model_by_alias=True)
async def mark_room_read(
    room_id: str,
    admin: Identity = Depends(get_current_admin),
    gateway: ChatGateway = Depends(get_gateway)
):
    """관리자 읽음 처리: 저장소 메시지 읽음 + 미읽음 배지 초기화"""
    record = await gateway.store.get_room(room_id)
    live_room = gateway.registry.get(room_id)
    if record is None and live_room is None:
        raise chat_room_not_found_error(room_id)

    marked = await gateway.store.mark_read(room_id) if record is not None else 0

    if live_room is not None:
        gateway.registry.mark_opened(room_id)
        gateway.admin_channel.announce_read(live_room)
        gateway.broadcast_read_receipt(live_room, reader_name=admin.name)

    logger.info(f"Chat room {room_id} marked read by admin {admin.subject_id}")
    return MarkReadResponse(room_id=room_id, marked=marked, unread_count=0)
