from __future__ import annotations

import json
import logging
from typing import Any, Optional

from openai import OpenAI

from avara.core.exceptions import SynthesisError
from avara.core.settings import settings

logger = logging.getLogger(__name__)


def parse_json_object(text: str | None) -> dict[str, Any]:
    """Parse a JSON object out of model output.

    Accepts bare JSON or JSON wrapped in prose/markdown by slicing from the
    first ``{`` to the last ``}``. Raises SynthesisError when nothing parses
    to an object.
    """
    raw = (text or "").strip()
    if not raw:
        raise SynthesisError("Empty model response")

    candidates = [raw]
    first, last = raw.find("{"), raw.rfind("}")
    if first != -1 and last > first:
        candidates.append(raw[first : last + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise SynthesisError("Model response was not a JSON object", details={"preview": raw[:200]})


class LLMService:
    """
    Thin wrapper over an OpenAI-compatible chat completions API.
    - Plain text chat.
    - JSON-object chat (response_format=json_object) with tolerant parsing.
    The same class talks to the insights router by passing its base_url/key.
    """

    def __init__(
        self,
        *,
        openai_client: Optional[OpenAI] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        organization: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.25,
        timeout: float = 60.0,
    ) -> None:
        self._openai_client: Optional[OpenAI] = openai_client
        self._api_key = api_key
        self._base_url = base_url
        self._organization = organization
        self.model = model or settings.synthesis_model
        self.temperature = temperature
        self.timeout = timeout

    # ---------- internal helpers ----------

    @property
    def openai_client(self) -> OpenAI:
        if self._openai_client is None:
            kwargs: dict[str, object] = {"timeout": self.timeout}
            api_key = self._api_key
            if api_key is None and settings.openai_api_key is not None:
                api_key = settings.openai_api_key.get_secret_value() or None
            if api_key:
                kwargs["api_key"] = api_key
            base_url = self._base_url or settings.openai_base_url
            if base_url:
                kwargs["base_url"] = base_url
            organization = self._organization or settings.openai_organization
            if organization:
                kwargs["organization"] = organization
            self._openai_client = OpenAI(**kwargs)
        return self._openai_client

    # ---------- Chat (simple text) ----------

    def chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Non-streaming text response.
        messages: [{"role": "system"|"user"|"assistant", "content": "..."}]
        """
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        resp = self.openai_client.chat.completions.create(**kwargs)
        return resp.choices[0].message.content or ""

    # ---------- JSON object outputs ----------

    def chat_json(
        self,
        messages: list[dict[str, str]],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
    ) -> dict[str, Any]:
        """Ask for a JSON object and parse it.

        `json_mode=False` is for providers that reject ``response_format``;
        the object is then sliced out of free text.
        """
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        resp = self.openai_client.chat.completions.create(**kwargs)
        content = resp.choices[0].message.content if resp.choices else None
        return parse_json_object(content)


__all__ = ["LLMService", "parse_json_object"]
