from fastapi import APIRouter, Depends

from wa_gateway.dependencies import get_gateway
from wa_gateway.routers.errors import to_http_exception
from wa_gateway.schemas.api import ApiResponse, TriggerStatusRequest
from wa_gateway.services.gateway_service import Gateway

router = APIRouter(prefix="/trigger", tags=["trigger"])


@router.get("", response_model=ApiResponse)
def get_triggers(gateway: Gateway = Depends(get_gateway)):
    return ApiResponse(success=True, message="Triggers retrieved successfully", data=gateway.get_triggers())


@router.post("/status", response_model=ApiResponse)
def set_trigger_status(request: TriggerStatusRequest, gateway: Gateway = Depends(get_gateway)):
    try:
        result = gateway.set_triggers_enabled(request.enabled)
    except Exception as e:
        raise to_http_exception(e, "update trigger status") from e
    return ApiResponse(success=True, message=result["message"], data={"enabled": result["enabled"]})
