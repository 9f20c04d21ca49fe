from wa_gateway.services.connection_supervisor import (
    ConnectionState,
    ConnectionSupervisor,
    ReconnectPolicy,
    compute_reconnect_delay,
)
from wa_gateway.services.gateway_service import (
    Gateway,
    GatewayValidationError,
    NotConnectedError,
    build_gateway,
)
from wa_gateway.services.ingest_service import IngestPipeline, MessageBuffer
from wa_gateway.services.trigger_engine import TriggerEngine
from wa_gateway.services.trigger_table import TriggerTable
from wa_gateway.services.webhook_service import DeliveryOutcome, WebhookDispatcher
