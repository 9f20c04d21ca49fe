from fastapi import HTTPException, status

from wa_gateway.logging_config import get_logger
from wa_gateway.services.gateway_service import GatewayValidationError, NotConnectedError

logger = get_logger("routers")


def to_http_exception(exc: Exception, action: str) -> HTTPException:
    if isinstance(exc, GatewayValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, NotConnectedError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": exc.message, "has_pending_pairing": exc.has_pending_pairing},
        )
    logger.error(f"Failed to {action}: {exc}", exc_info=True)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}")
