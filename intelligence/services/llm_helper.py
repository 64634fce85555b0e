import os
import logging
from anthropic import Anthropic
from typing import Any, Dict, Optional

from intelligence.core.config import AppConfig
from intelligence.prompts.prompt_generation_prompts import GEO_ANALYST_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class LLMHelperMixin:
    """Structured Claude calls shared by the LLM-backed GEO collaborators.

    Subclasses set DEFAULT_* class attributes; anything left as None falls
    back to AppConfig.claude. Output is always requested through a forced
    tool call, so callers get the tool input dict or a ValueError.
    """
    DEFAULT_MODEL: Optional[str] = None
    DEFAULT_MAX_TOKENS: Optional[int] = None
    DEFAULT_TEMPERATURE: Optional[float] = None

    def _resolve_system_prompt(self, system: Optional[str]) -> str:
        """Base analyst prompt, extended by a service-specific addendum when given."""
        base = GEO_ANALYST_SYSTEM_PROMPT
        if system is not None and system.strip():
            return f"{base}\n\n{system}"
        return base

    def _record_exchange(self, prompt: str, raw_text: str) -> None:
        """Keep the last prompt/response on the instance for debugging."""
        self.last_llm_prompt = prompt
        self.last_llm_response = raw_text

    def _resolve_model_params(self, max_tokens: Optional[int], temperature: Optional[float]):
        """Resolve model parameters from service defaults or AppConfig fallback."""
        claude_cfg = AppConfig.claude
        model = self.DEFAULT_MODEL or claude_cfg.model
        max_toks = max_tokens if max_tokens is not None else self.DEFAULT_MAX_TOKENS
        temp = temperature if temperature is not None else self.DEFAULT_TEMPERATURE
        if max_toks is None:
            max_toks = claude_cfg.max_tokens
        if temp is None:
            temp = claude_cfg.temperature
        return model, max_toks, temp

    def format_prompt(self, template: str, **kwargs) -> str:
        """Fill a prompt template; missing placeholders raise KeyError."""
        return template.format(**kwargs)

    def _call_llm_structured(
        self,
        prompt: str,
        schema: Dict,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        system: Optional[str] = None,
    ) -> Dict:
        """Send `prompt` with `schema` as the only allowed tool; return the tool input."""
        model, max_tokens, temperature = self._resolve_model_params(max_tokens, temperature)
        logger.debug("Calling Claude", extra={"model": model, "tool": schema["name"], "max_tokens": max_tokens})
        kwargs: Dict[str, Any] = dict(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=self._resolve_system_prompt(system),
            messages=[{"role": "user", "content": prompt}],
            tools=[schema],
            tool_choice={"type": "tool", "name": schema["name"]}
        )
        response = self.client.messages.create(**kwargs)
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and getattr(block, "name", None) == schema["name"]:
                self._record_exchange(prompt, repr(response))
                return block.input
        raise ValueError(f"Expected tool_use response, got: {response.content}")

    @property
    def client(self) -> Anthropic:
        """Injected client, else one built from the configured API key."""
        if getattr(self, "_client", None) is not None:
            return self._client
        api_key = getattr(self, "_api_key", None) or AppConfig.claude.api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY required for LLM calls or provide a client via set_client")
        self._client = Anthropic(api_key=api_key)
        return self._client

    def set_client(self, client: Anthropic) -> None:
        """Use `client` for all later calls (tests pass a Mock here)."""
        self._client = client
