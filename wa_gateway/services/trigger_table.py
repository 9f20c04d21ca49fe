from pathlib import Path
from typing import Iterable, Optional

import yaml

from wa_gateway.logging_config import get_logger
from wa_gateway.schemas.trigger import HandlerId, TriggerConfig, TriggerDefinition

logger = get_logger("trigger_table")

DEFAULT_TRIGGERS_PATH = Path(__file__).resolve().parents[1] / "data" / "triggers.yaml"


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Trigger table not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return data if isinstance(data, dict) else {}


class TriggerTable:
    """Ordered, read-only trigger rules plus one global on/off switch."""

    def __init__(self, triggers: Iterable[TriggerDefinition], enabled: bool = True):
        self._triggers = tuple(triggers)
        self._global_enabled = enabled

    @classmethod
    def from_yaml(cls, path: Optional[str | Path] = None) -> "TriggerTable":
        path = Path(path) if path else DEFAULT_TRIGGERS_PATH
        data = _load_yaml(path)
        triggers = [TriggerDefinition.model_validate(item) for item in data.get("triggers") or []]
        for trigger in triggers:
            if trigger.handler == HandlerId.UNKNOWN:
                logger.warning(f"Trigger {trigger.prefix} references an unknown handler")
        logger.info(f"Loaded {len(triggers)} triggers from {path}")
        return cls(triggers, enabled=bool(data.get("enabled", True)))

    @property
    def triggers(self) -> tuple[TriggerDefinition, ...]:
        return self._triggers

    def is_enabled(self) -> bool:
        return self._global_enabled

    def set_enabled(self, enabled: bool) -> dict:
        self._global_enabled = enabled
        state = "enabled" if enabled else "disabled"
        logger.info(f"Triggers {state} globally")
        return {"success": True, "enabled": enabled, "message": f"Triggers {state} successfully"}

    def snapshot(self) -> TriggerConfig:
        return TriggerConfig(enabled=self._global_enabled, triggers=list(self._triggers))

    def match(self, text: str) -> Optional[TriggerDefinition]:
        """First enabled trigger, in table order, whose prefix starts ``text`` (case-insensitive)."""
        lowered = text.lower()
        for trigger in self._triggers:
            if trigger.enabled and lowered.startswith(trigger.prefix.lower()):
                return trigger
        return None
