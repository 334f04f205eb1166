from __future__ import annotations

from fastapi import APIRouter, Query

from dm_service.api.deps import CurrentPrincipal, DeliveryDep, UoWDep
from dm_service.api.v1.schemas.chat_list import ChatListEntryResponse, ChatListResponse
from dm_service.api.v1.schemas.message import (
    HistoryResponse,
    MarkReadResponse,
    MessageResponse,
    SendMessageRequest,
    SendMessageResponse,
    UnreadCountResponse,
)
from dm_service.application.dto.message import SendMessageDTO
from dm_service.application.policies.message_rules import clamp_limit
from dm_service.config import settings
from dm_service.services import chat_list_service, message_service

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.get("/chats", response_model=ChatListResponse)
async def get_chat_list(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ChatListResponse:
    entries = await chat_list_service.chat_list(
        principal.user_id, uow, placeholder_name=settings.PLACEHOLDER_NAME,
    )
    return ChatListResponse(
        chats=[ChatListEntryResponse.model_validate(e, from_attributes=True) for e in entries],
        current_user_id=principal.user_id,
    )


@router.get("/history/{other_user_id}", response_model=HistoryResponse)
async def get_history(
    other_user_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    limit: int | None = Query(None, ge=1, le=settings.HISTORY_MAX_LIMIT),
) -> HistoryResponse:
    limit = clamp_limit(limit, settings.HISTORY_DEFAULT_LIMIT, settings.HISTORY_MAX_LIMIT)
    messages = await message_service.history(principal.user_id, other_user_id, limit, uow)
    return HistoryResponse(
        messages=[MessageResponse.model_validate(m, from_attributes=True) for m in messages],
        current_user_id=principal.user_id,
    )


@router.post("/send/{receiver_id}", response_model=SendMessageResponse, status_code=201)
async def send_message(
    receiver_id: int,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    delivery: DeliveryDep,
) -> SendMessageResponse:
    result = await delivery.send(
        SendMessageDTO(
            sender_id=principal.user_id,
            receiver_id=receiver_id,
            body=body.body or "",
            client_msg_id=body.client_msg_id,
        )
    )
    return SendMessageResponse(
        message=MessageResponse.model_validate(result.message, from_attributes=True),
        client_msg_id=body.client_msg_id,
    )


@router.post("/read/{other_user_id}", response_model=MarkReadResponse)
async def mark_read(
    other_user_id: int,
    principal: CurrentPrincipal,
    delivery: DeliveryDep,
) -> MarkReadResponse:
    updated = await delivery.mark_read(principal.user_id, other_user_id)
    return MarkReadResponse(counterpart_id=other_user_id, updated=updated)


@router.get("/unread/{other_user_id}", response_model=UnreadCountResponse)
async def get_unread_count(
    other_user_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UnreadCountResponse:
    count = await message_service.unread_count(principal.user_id, other_user_id, uow)
    return UnreadCountResponse(counterpart_id=other_user_id, count=count)
