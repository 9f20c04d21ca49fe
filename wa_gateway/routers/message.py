from typing import Optional

from fastapi import APIRouter, Depends, Query

from wa_gateway.dependencies import get_gateway
from wa_gateway.routers.errors import to_http_exception
from wa_gateway.schemas.api import ApiResponse, GroupMessageRequest, ReactionRequest, SendMessageRequest
from wa_gateway.schemas.message import ContentType
from wa_gateway.services.gateway_service import Gateway

router = APIRouter(prefix="/message", tags=["message"])


@router.post("/send", response_model=ApiResponse)
async def send_message(request: SendMessageRequest, gateway: Gateway = Depends(get_gateway)):
    try:
        record = await gateway.send_message(request.to, request.message)
    except Exception as e:
        raise to_http_exception(e, "send message") from e
    return ApiResponse(success=True, message="Message sent successfully", data=record)


@router.post("/reaction", response_model=ApiResponse)
async def send_reaction(request: ReactionRequest, gateway: Gateway = Depends(get_gateway)):
    try:
        record = await gateway.send_reaction(request.message_key, request.emoji)
    except Exception as e:
        raise to_http_exception(e, "send reaction") from e
    return ApiResponse(success=True, message="Reaction sent successfully", data=record)


@router.get("/groups", response_model=ApiResponse)
async def get_groups(gateway: Gateway = Depends(get_gateway)):
    try:
        groups = await gateway.get_groups()
    except Exception as e:
        raise to_http_exception(e, "get groups") from e
    return ApiResponse(
        success=True,
        message="Groups retrieved successfully",
        data={"groups": groups, "count": len(groups)},
    )


@router.post("/groups/send", response_model=ApiResponse)
async def send_group_message(request: GroupMessageRequest, gateway: Gateway = Depends(get_gateway)):
    try:
        record = await gateway.send_group_message(request.group_id, request.message)
    except Exception as e:
        raise to_http_exception(e, "send group message") from e
    return ApiResponse(success=True, message="Group message sent successfully", data=record)


@router.get("/received", response_model=ApiResponse)
def get_received_messages(limit: Optional[int] = None, gateway: Gateway = Depends(get_gateway)):
    try:
        messages = gateway.get_received_messages(limit)
    except Exception as e:
        raise to_http_exception(e, "get received messages") from e
    return ApiResponse(
        success=True,
        message="Received messages retrieved successfully",
        data={"messages": messages, "count": len(messages)},
    )


@router.delete("/received", response_model=ApiResponse)
def clear_received_messages(gateway: Gateway = Depends(get_gateway)):
    cleared = gateway.clear_received_messages()
    return ApiResponse(success=True, message="Received messages cleared successfully", data={"cleared": cleared})


@router.get("/search", response_model=ApiResponse)
def search_messages(
    q: Optional[str] = None,
    limit: int = 50,
    message_type: Optional[ContentType] = Query(default=None, alias="type"),
    is_group: Optional[bool] = None,
    from_sender: Optional[str] = None,
    date_from: Optional[int] = None,
    date_to: Optional[int] = None,
    gateway: Gateway = Depends(get_gateway),
):
    try:
        messages = gateway.search_messages(
            q,
            limit=limit,
            message_type=message_type,
            is_group=is_group,
            from_sender=from_sender,
            date_from=date_from,
            date_to=date_to,
        )
    except Exception as e:
        raise to_http_exception(e, "search messages") from e
    return ApiResponse(
        success=True,
        message="Messages searched successfully",
        data={"messages": messages, "count": len(messages), "query": q},
    )


@router.get("/stats", response_model=ApiResponse)
def get_message_stats(gateway: Gateway = Depends(get_gateway)):
    return ApiResponse(success=True, message="Message statistics retrieved", data=gateway.get_message_stats())


@router.get("/status", response_model=ApiResponse)
def get_connection_status(gateway: Gateway = Depends(get_gateway)):
    status = gateway.get_connection_status()
    message = "WhatsApp connected" if status.is_connected else "WhatsApp not connected"
    return ApiResponse(success=True, message=message, data=status)


@router.post("/reset-session", response_model=ApiResponse)
async def reset_session(gateway: Gateway = Depends(get_gateway)):
    try:
        result = await gateway.reset_session()
    except Exception as e:
        raise to_http_exception(e, "reset session") from e
    return ApiResponse(success=True, message=result["message"])
