import logging
from typing import Any, Dict, List, Optional

from anthropic import Anthropic

from intelligence.core.fields import clamp, coerce_number, text_of
from intelligence.core.types import BrandContext
from intelligence.prompts.prompt_generation_prompts import PROMPT_GENERATION_PROMPT
from intelligence.prompts.prompt_generation_schemas import PROMPT_GENERATION_SCHEMA, PROMPT_INTENTS
from intelligence.services.llm_helper import LLMHelperMixin

logger = logging.getLogger(__name__)


class LLMPromptGenerator(LLMHelperMixin):
    """
    Prompt-generation collaborator backed by Claude tool-use output.

    Call it as `generator(workspace_id, brand_context)`; it returns
    `[{text, intent, commercialIntent, industryRelevance}]` with duplicates
    removed. LLM and parsing errors propagate so the orchestrator can fall back.
    """

    DEFAULT_MAX_TOKENS = 2000
    DEFAULT_TEMPERATURE = 0.3

    # Questions requested per brand
    MAX_PROMPTS = 20

    def __init__(
        self,
        client: Optional[Anthropic] = None,
        max_prompts: Optional[int] = None,
        api_key: Optional[str] = None,
    ):
        self._api_key = api_key
        self.max_prompts = max_prompts or self.MAX_PROMPTS
        if client is not None:
            self.set_client(client)

    def __call__(self, workspace_id: str, brand_context: BrandContext) -> List[Dict[str, Any]]:
        return self.generate(workspace_id, brand_context)

    def generate(self, workspace_id: str, brand_context: BrandContext) -> List[Dict[str, Any]]:
        prompt = self.format_prompt(
            PROMPT_GENERATION_PROMPT,
            brand_name=brand_context.brand_name,
            industry=brand_context.industry,
            category=brand_context.category,
            vertical=brand_context.vertical,
            market_type=brand_context.market_type,
            service_type=brand_context.service_type,
            services=", ".join(brand_context.services) or "not specified",
            max_prompts=self.max_prompts,
        )
        result = self._call_llm_structured(prompt, PROMPT_GENERATION_SCHEMA)
        prompts = self._parse(result.get("prompts") or [])
        logger.info(
            "Generated prompts",
            extra={"workspace_id": workspace_id, "brand_name": brand_context.brand_name, "count": len(prompts)},
        )
        return prompts[:self.max_prompts]

    @staticmethod
    def _parse(items: List[Any]) -> List[Dict[str, Any]]:
        parsed: List[Dict[str, Any]] = []
        seen = set()
        for item in items:
            if not isinstance(item, dict):
                continue
            text = text_of(item.get("text"))
            if not text or text.lower() in seen:
                continue
            seen.add(text.lower())
            intent = text_of(item.get("intent")).upper()
            commercial = coerce_number(item.get("commercial_intent"))
            relevance = coerce_number(item.get("industry_relevance"))
            parsed.append({
                "text": text,
                "intent": intent if intent in PROMPT_INTENTS else "UNKNOWN",
                "commercialIntent": clamp(commercial, 0.0, 1.0) if commercial is not None else 0.0,
                "industryRelevance": clamp(relevance, 0.0, 1.0) if relevance is not None else 0.5,
            })
        return parsed
