from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from wa_gateway.schemas.message import DeliveryRecord


class TriggerKind(str, Enum):
    STATIC_RESPONSE = "static_response"
    HANDLER_REF = "handler_ref"


class HandlerId(str, Enum):
    A1_REPORT = "handleA1Report"
    UNKNOWN = "unknown"


class TriggerDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prefix: str
    kind: TriggerKind = TriggerKind.STATIC_RESPONSE
    response: Optional[str] = None
    handler: Optional[HandlerId] = None
    enabled: bool = True
    reply_enabled: bool = Field(default=True, validation_alias=AliasChoices("reply_enabled", "reply"))

    @field_validator("prefix")
    @classmethod
    def prefix_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("trigger prefix must not be empty")
        return value

    @field_validator("handler", mode="before")
    @classmethod
    def coerce_handler(cls, value: object) -> object:
        if value is None or isinstance(value, HandlerId):
            return value
        try:
            return HandlerId(str(value))
        except ValueError:
            return HandlerId.UNKNOWN

    @model_validator(mode="after")
    def check_kind_fields(self) -> "TriggerDefinition":
        if self.kind == TriggerKind.STATIC_RESPONSE and self.response is None:
            raise ValueError(f"static trigger {self.prefix!r} needs a response")
        if self.kind == TriggerKind.HANDLER_REF and self.handler is None:
            raise ValueError(f"handler trigger {self.prefix!r} needs a handler")
        return self


class TriggerMatchResult(BaseModel):
    matched: bool = False
    trigger: Optional[TriggerDefinition] = None
    response_text: Optional[str] = None
    delivery: Optional[DeliveryRecord] = None

    @classmethod
    def no_match(cls) -> "TriggerMatchResult":
        return cls(matched=False)


class TriggerConfig(BaseModel):
    enabled: bool
    triggers: list[TriggerDefinition]
