import json
import re
from typing import Any, Optional

from wa_gateway.logging_config import get_logger
from wa_gateway.services.llm.base import LLMProvider

logger = get_logger("ai_service")

SYSTEM_PROMPT_TEXT = (
    "Anda adalah asisten AI yang membantu menghasilkan respons yang sesuai dan profesional "
    "dalam bahasa Indonesia. Berikan respons yang jelas, informatif, dan sesuai konteks."
)
SYSTEM_PROMPT_JSON = (
    "Anda adalah asisten AI yang menghasilkan respons dalam format JSON yang valid. "
    "Pastikan output Anda selalu berupa JSON yang dapat di-parse."
)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class AIServiceError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def parse_json_response(text: str) -> dict:
    """Parse a model reply as JSON, falling back to the outermost ``{...}`` block."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        logger.warning("AI response is not plain JSON, extracting JSON block")
        match = _JSON_BLOCK.search(text or "")
        if not match:
            raise AIServiceError("No valid JSON found in AI response")
        try:
            data = json.loads(match.group(0))
        except ValueError as exc:
            raise AIServiceError("AI response is not valid JSON") from exc
    if not isinstance(data, dict):
        raise AIServiceError("AI response JSON is not an object")
    return data


class AIService:
    def __init__(self, provider: LLMProvider):
        self.provider = provider

    @property
    def configured(self) -> bool:
        return bool(getattr(self.provider, "configured", True))

    async def _complete(self, system_prompt: str, prompt: str, **options: Any) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ]
        try:
            response = await self.provider.generate(messages, **options)
        except Exception as e:
            logger.error(f"AI provider call failed: {e}")
            raise AIServiceError(f"AI provider failed: {e}") from e
        return response.content

    async def generate_response(self, prompt: str, **options: Any) -> str:
        return await self._complete(SYSTEM_PROMPT_TEXT, prompt, **options)

    async def generate_json(self, prompt: str, schema: Optional[dict] = None, **options: Any) -> dict:
        system_prompt = SYSTEM_PROMPT_JSON
        if schema:
            system_prompt += f"\n\nSchema yang diharapkan:\n{json.dumps(schema, indent=2)}"
        content = await self._complete(system_prompt, prompt, **options)
        return parse_json_response(content)

    async def generate_structured_report(self, text: str, **options: Any) -> dict:
        prompt = f"""Ubah teks laporan berikut menjadi format terstruktur dalam JSON:

Teks: "{text}"

Format JSON yang diharapkan:
{{
  "title": "Judul laporan",
  "category": "Kategori masalah",
  "priority": "high/medium/low",
  "description": "Deskripsi detail",
  "location": "Lokasi kejadian (jika ada)",
  "action_required": "Tindakan yang diperlukan",
  "tags": ["tag1", "tag2"]
}}"""
        return await self.generate_json(prompt, **options)

    async def check_api_health(self) -> bool:
        if not self.configured:
            logger.warning("AI provider is not configured")
            return False
        try:
            reply = await self.generate_response("Test", max_tokens=10)
        except AIServiceError as e:
            logger.error(f"AI health check failed: {e.message}")
            return False
        return bool(reply)
