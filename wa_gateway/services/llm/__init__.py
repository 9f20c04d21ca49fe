from wa_gateway.services.llm.base import LLMProvider, LLMResponse
from wa_gateway.services.llm.openrouter_provider import OpenRouterProvider

__all__ = ["LLMProvider", "LLMResponse", "OpenRouterProvider"]
