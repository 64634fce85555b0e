"""Stage keys, default factories and fallback routines for the GEO pipeline.

Defaults are raw (collaborator-shaped) values; they pass through the
sanitizer like any real stage output so the assembled response has one shape
regardless of which stages failed.
"""
from typing import Any, Dict, List, Sequence

from intelligence.core.fields import read_field
from intelligence.core.types import ENGINES, REFERENCE_SCORE_WEIGHTS, UNKNOWN_INDUSTRY, StageDefinition

# --- stage keys, in execution order ---
INDUSTRY_DETECTION = "industry_detection"
BUSINESS_SUMMARY = "business_summary"
PROMPT_GENERATION = "prompt_generation"
PROMPT_CLUSTERING = "prompt_clustering"
COMPETITOR_DETECTION = "competitor_detection"
SOV_ANALYSIS = "sov_analysis"
CITATION_ANALYSIS = "citation_analysis"
COMMERCIAL_VALUE = "commercial_value"
CROSS_ENGINE_PATTERNS = "cross_engine_patterns"
COMPETITOR_ADVANTAGE = "competitor_advantage"
TRUST_FAILURES = "trust_failures"
FIX_DIFFICULTY = "fix_difficulty"
GEO_SCORE = "geo_score"
OPPORTUNITIES = "opportunities"
RECOMMENDATIONS = "recommendations"

STAGE_ORDER = (
    INDUSTRY_DETECTION,
    BUSINESS_SUMMARY,
    PROMPT_GENERATION,
    PROMPT_CLUSTERING,
    COMPETITOR_DETECTION,
    SOV_ANALYSIS,
    CITATION_ANALYSIS,
    COMMERCIAL_VALUE,
    CROSS_ENGINE_PATTERNS,
    COMPETITOR_ADVANTAGE,
    TRUST_FAILURES,
    FIX_DIFFICULTY,
    GEO_SCORE,
    OPPORTUNITIES,
    RECOMMENDATIONS,
)


def validate_stage_graph(stages: Sequence[StageDefinition]) -> None:
    """Reject duplicate keys and dependencies that are unknown or not yet run.

    Requiring every dependency to precede its consumer makes the fixed order a
    topological order, which also rules out cycles.
    """
    seen = set()
    for stage in stages:
        if stage.key in seen:
            raise ValueError(f"Duplicate stage key: {stage.key}")
        for dep in stage.depends_on:
            if dep == stage.key:
                raise ValueError(f"Stage {stage.key} depends on itself")
            if dep not in seen:
                raise ValueError(f"Stage {stage.key} depends on {dep}, which does not run before it")
        seen.add(stage.key)


# --- default factories ---

def default_industry_classification() -> Dict[str, Any]:
    return {
        'primaryIndustry': UNKNOWN_INDUSTRY,
        'secondaryIndustries': [],
        'confidence': 0.3,
        'evidence': {
            'schemaSignals': [],
            'contentSignals': [],
            'competitorSignals': [],
            'llmClassification': '',
            'metadataSignals': [],
        },
        'reasoning': 'Default classification due to detection failure',
    }


def default_business_summary() -> Dict[str, Any]:
    return {'summary': 'Business information unavailable', 'confidence': 0.3, 'evidence': []}


def default_citations() -> Dict[str, Any]:
    return {'citations': [], 'total': 0, 'confidence': 0.3}


def default_commercial_value(cluster: Any = None) -> Dict[str, Any]:
    return {
        'clusterTitle': cluster_title(cluster) if cluster is not None else '',
        'visibilityValueIndex': 0,
        'projectedVisibilityGain': 0,
        'commercialOpportunityScore': 0,
        'confidence': 0.3,
        'evidence': [],
    }


def default_cross_engine_patterns() -> Dict[str, Any]:
    return {
        'enginesRecognizing': [],
        'enginesSuppressing': [],
        'consistencyPattern': {
            'consistencyScore': 0,
            'consistentEngines': [],
            'inconsistentEngines': [],
            'explanation': 'Pattern analysis unavailable',
        },
        'engineConfidence': {engine: 0.3 for engine in ENGINES},
        'evidence': [],
    }


def default_competitor_analysis(competitor: Any = None) -> Dict[str, Any]:
    return {
        'competitor': competitor_name(competitor) if competitor is not None else 'Unknown',
        'structuralAdvantageScore': 0,
        'structuralWeaknessScore': 0,
        'advantages': [],
        'weaknesses': [],
        'confidence': 0.3,
        'evidence': [],
    }


def default_fix_difficulty(cluster: Any = None) -> Dict[str, Any]:
    return {
        'clusterTitle': cluster_title(cluster) if cluster is not None else '',
        'difficultyScore': 50,
        'primaryConstraints': [],
        'secondaryConstraints': [],
        'timeEstimate': 'Unknown',
        'confidence': 0.3,
        'evidence': [],
    }


def default_geo_score() -> Dict[str, Any]:
    return {
        'total': 0,
        'breakdown': {name: {'score': 0, 'weight': weight} for name, weight in REFERENCE_SCORE_WEIGHTS.items()},
    }


def empty_list() -> List[Any]:
    return []


def generate_fallback_prompts(brand_name: str, industry: str) -> List[Dict[str, Any]]:
    """Deterministic template prompts used when generation yields nothing."""
    return [
        {'text': f"best {industry} companies", 'intent': 'BEST', 'commercialIntent': 0.7, 'industryRelevance': 0.8},
        {'text': f"{brand_name} reviews", 'intent': 'TRUST', 'commercialIntent': 0.5, 'industryRelevance': 0.6},
        {'text': f"{brand_name} alternatives", 'intent': 'ALTERNATIVES', 'commercialIntent': 0.8, 'industryRelevance': 0.7},
    ]


# --- raw-output accessors shared by the orchestrator ---

def prompt_text(prompt: Any) -> str:
    if isinstance(prompt, str):
        return prompt
    return str(read_field(prompt, 'text') or '')


def cluster_title(cluster: Any) -> str:
    return str(read_field(cluster, 'title') or 'Unknown')


def cluster_prompts(cluster: Any) -> List[Any]:
    prompts = read_field(cluster, 'prompts')
    return list(prompts) if isinstance(prompts, (list, tuple)) else []


def competitor_name(competitor: Any) -> str:
    if isinstance(competitor, str):
        return competitor
    return str(read_field(competitor, 'brandName', 'brand_name', 'name') or '')


# --- brand-context inference ---

def infer_market_type(industry: str) -> str:
    lower = (industry or '').lower()
    if 'b2b' in lower or 'enterprise' in lower or 'saas' in lower:
        return 'B2B'
    if 'marketplace' in lower or 'platform' in lower:
        return 'B2B2C'
    return 'B2C'


def infer_service_type(industry: str) -> str:
    lower = (industry or '').lower()
    if 'saas' in lower or 'software' in lower or 'platform' in lower:
        return 'Platform'
    if 'service' in lower or 'clinic' in lower or 'studio' in lower:
        return 'Service'
    if 'retail' in lower or 'e-commerce' in lower or 'store' in lower:
        return 'Product'
    return 'Hybrid'
