from typing import List, Optional

import httpx

from wa_gateway.config import Settings
from wa_gateway.logging_config import get_logger
from wa_gateway.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.openrouter")


class OpenRouterProvider(LLMProvider):
    """OpenRouter chat-completions API."""

    def __init__(self, settings: Settings):
        self.api_key = settings.openrouter_api_key
        self.base_url = settings.openrouter_endpoint
        self.default_model = settings.openrouter_model
        self.default_temperature = settings.openrouter_temperature
        self.default_max_tokens = settings.openrouter_max_tokens
        self.timeout = settings.openrouter_timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        if not self.api_key:
            raise RuntimeError("OpenRouter API key is not configured")

        model = model or self.default_model
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens or self.default_max_tokens,
            "temperature": self.default_temperature if temperature is None else temperature,
            "stream": False,
        }
        logger.debug(f"OpenRouter request: model={model}, messages_count={len(messages)}")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                    "HTTP-Referer": "https://whatsapp-api.local",
                    "X-Title": "WhatsApp API AI Assistant",
                },
                json=payload,
            )

        if response.status_code != 200:
            logger.error(f"OpenRouter error: {response.text[:500]}")
            raise RuntimeError(f"OpenRouter API error: {response.status_code} - {response.text[:200]}")

        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            raise RuntimeError("Invalid response from OpenRouter API")

        content = (choices[0].get("message") or {}).get("content") or ""
        usage = data.get("usage")
        logger.info(
            "OpenRouter response received",
            extra={"context": {"length": len(content), "tokens": (usage or {}).get("total_tokens")}},
        )
        return LLMResponse(content=content, model=data.get("model", model), usage=usage)
