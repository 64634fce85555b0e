from dataclasses import dataclass, fields
from typing import Any, Callable, List, Optional


@dataclass
class IntelligenceCollaborators:
    """Injected stage implementations; any may be left unset.

    Each callable returns raw (mapping or attribute-bearing) output which the
    sanitizer normalizes. An unset collaborator makes its stage fail and fall
    back to defaults.
    """
    # (workspace_id, domain) -> classification
    industry_classifier: Optional[Callable[..., Any]] = None
    # (workspace_id, domain, brand_name) -> summary
    business_summarizer: Optional[Callable[..., Any]] = None
    # (workspace_id, brand_context) -> [prompt]
    prompt_generator: Optional[Callable[..., Any]] = None
    # (workspace_id, brand_name, prompt_texts, industry) -> [cluster]
    prompt_clusterer: Optional[Callable[..., Any]] = None
    # (workspace_id, domain, brand_name, industry) -> [competitor]
    competitor_detector: Optional[Callable[..., Any]] = None
    # (workspace_id, entities) -> [sov entry]
    share_of_voice: Optional[Callable[..., Any]] = None
    # (workspace_id, domain, limit) -> {citations, total, confidence}
    citation_service: Optional[Callable[..., Any]] = None
    # (workspace_id, brand_name, cluster_prompts, industry) -> value
    commercial_value_scorer: Optional[Callable[..., Any]] = None
    # (workspace_id, brand_name, prompt_texts) -> patterns
    engine_pattern_analyzer: Optional[Callable[..., Any]] = None
    # (workspace_id, brand_name, competitor_name, prompt_texts) -> analysis
    competitor_advantage_analyzer: Optional[Callable[..., Any]] = None
    # (workspace_id, brand_name) -> [trust failure]
    trust_failure_detector: Optional[Callable[..., Any]] = None
    # (workspace_id, brand_name, cluster_title, cluster_prompts) -> difficulty
    fix_difficulty_scorer: Optional[Callable[..., Any]] = None
    # (workspace_id, domain, brand_name, competitor_names, industry) -> score
    score_calculator: Optional[Callable[..., Any]] = None
    # (workspace_id, brand_name, domain, max_opportunities) -> [opportunity]
    opportunity_generator: Optional[Callable[..., Any]] = None
    # (workspace_id, brand_name, context) -> [recommendation]
    recommendation_generator: Optional[Callable[..., Any]] = None

    def configured(self) -> List[str]:
        """Names of the collaborators that are set."""
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]
