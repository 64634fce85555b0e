"""Normalize raw pipeline output into a well-formed IntelligenceResponse.

Each output structure is described by a table of FieldRule entries. A single
builder walks the table, reads every field from the raw value (mapping with
snake_case or camelCase keys, or an attribute-bearing object such as an
already-sanitized dataclass) and applies the rule's kind:

    percent / probability       clamp to [0,100] / [0,1]; NaN or junk -> fallback
    non_negative / count        floor at 0; non-finite -> fallback
    difficulty                  easy/medium/hard -> 30/60/90, unknown label -> 50
    optional_*                  like the above but missing stays None
    array / string_list         non-lists -> [], None items dropped, order kept
    min_string_list             string_list padded at the end to `minimum`
    enum                        lower-cased; values outside `allowed` -> fallback
    required_string / string    empty -> placeholder / fallback
    mapping / object            dict copy / nested structure via `item`

Sanitizing a sanitized response is a no-op.
"""
import hashlib
import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from intelligence.core.config import SERVICE_VERSION
from intelligence.core.fields import as_list, clamp, coerce_number, read_field, text_of, unique
from intelligence.core.types import (
    DIFFICULTIES,
    DIFFICULTY_LABEL_SCORES,
    ENGINES,
    PRIORITIES,
    REFERENCE_SCORE_WEIGHTS,
    UNKNOWN_INDUSTRY,
    BusinessSummary,
    CitationReport,
    CommercialValue,
    Competitor,
    CompetitorAnalysis,
    CompositeScore,
    ConsistencyPattern,
    CrossEnginePatterns,
    EngineVisibility,
    ExpectedImpact,
    FieldRule,
    FixDifficulty,
    ImprovementPath,
    IndustryContext,
    IntelligenceResponse,
    Opportunity,
    Prompt,
    PromptCluster,
    Recommendation,
    ResponseMetadata,
    ScoreComponent,
    ScoreImpact,
    ShareOfVoiceEntry,
    TrustFailure,
)

logger = logging.getLogger(__name__)

DEFAULT_DIFFICULTY = 50.0
DEFAULT_CONFIDENCE = 0.5

OPPORTUNITY_STEP_PADDING = (
    "Review opportunity details",
    "Plan content and technical changes",
    "Implement and track visibility",
)
RECOMMENDATION_STEP_PADDING = (
    "Review recommendation details",
    "Plan implementation",
    "Execute and monitor",
)


# --- generic rule application ---

def _number(kind: str, value: Any, fallback: Any) -> Any:
    if kind == 'difficulty' and isinstance(value, str) and coerce_number(value) is None:
        return DIFFICULTY_LABEL_SCORES.get(value.strip().lower(), DEFAULT_DIFFICULTY)
    number = coerce_number(value)
    if number is None:
        return fallback
    if kind in ('percent', 'optional_percent', 'difficulty'):
        return clamp(number, 0.0, 100.0)
    if kind == 'probability':
        return clamp(number, 0.0, 1.0)
    # non_negative / optional_non_negative / count
    number = max(0.0, number)
    if not np.isfinite(number):
        return fallback
    return int(number) if kind == 'count' else number


def _string_item(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return text_of(read_field(value, 'text', 'title', 'name'))


def _string_list(value: Any) -> List[str]:
    return [s for s in (_string_item(v) for v in as_list(value) if v is not None) if s]


def _pad(items: List[str], minimum: int, padding: Sequence[str]) -> List[str]:
    padded = list(items)
    for placeholder in padding:
        if len(padded) >= minimum:
            break
        if placeholder not in padded:
            padded.append(placeholder)
    while padded and len(padded) < minimum:
        padded.append(padded[-1])
    return padded


def _apply(rule: FieldRule, raw: Any, warnings: List[str], owner: str) -> Any:
    value = read_field(raw, rule.field, *rule.aliases)
    kind = rule.kind

    if kind in ('percent', 'probability', 'non_negative', 'count', 'difficulty',
                'optional_percent', 'optional_non_negative'):
        return _number(kind, value, rule.fallback)
    if kind == 'array':
        items = [v for v in as_list(value) if v is not None]
        if rule.item is None:
            return items
        mapped = [rule.item(v, warnings) for v in items]
        return [m for m in mapped if m is not None]
    if kind == 'string_list':
        return _string_list(value)
    if kind == 'min_string_list':
        items = _string_list(value)
        if len(items) < rule.minimum:
            padded = _pad(items, rule.minimum, rule.padding)
            warnings.append(
                f"{owner}: {rule.field} had {len(items)} of {rule.minimum} required entries; padded with placeholders"
            )
            return padded
        return items
    if kind == 'enum':
        label = text_of(value).lower()
        return label if label in rule.allowed else rule.fallback
    if kind in ('required_string', 'string'):
        return text_of(value) or rule.fallback
    if kind == 'mapping':
        return dict(value) if isinstance(value, Mapping) else {}
    if kind == 'object':
        return rule.item(value, warnings)
    raise ValueError(f"Unknown field rule kind: {kind}")


def _build(cls: type, raw: Any, rules: Sequence[FieldRule], warnings: List[str]) -> Any:
    values: Dict[str, Any] = {}
    for rule in rules:
        owner = f"{cls.__name__} '{values.get('title') or values.get('brand_name') or '?'}'"
        values[rule.field] = _apply(rule, raw, warnings, owner)
    return cls(**values)


def _confidence(name: str = 'confidence') -> FieldRule:
    return FieldRule(name, 'probability', fallback=DEFAULT_CONFIDENCE)


def _evidence_list() -> FieldRule:
    return FieldRule('evidence', 'array')


# --- nested structures ---

def _score_impact(raw: Any, warnings: List[str]) -> ScoreImpact:
    return _build(ScoreImpact, raw, SCORE_IMPACT_RULES, warnings)


def _engine_visibility(raw: Any, warnings: List[str]) -> EngineVisibility:
    return _build(EngineVisibility, raw, ENGINE_VISIBILITY_RULES, warnings)


def _engine_evidence(raw: Any, warnings: List[str]) -> Dict[str, List[Any]]:
    return {engine: [v for v in as_list(read_field(raw, engine)) if v is not None] for engine in ENGINES}


def _engine_confidence(raw: Any, warnings: List[str]) -> Dict[str, float]:
    return {
        engine: _number('probability', read_field(raw, engine), DEFAULT_CONFIDENCE)
        for engine in ENGINES
    }


def _consistency_pattern(raw: Any, warnings: List[str]) -> ConsistencyPattern:
    return _build(ConsistencyPattern, raw, CONSISTENCY_RULES, warnings)


def _expected_impact(raw: Any, warnings: List[str]) -> ExpectedImpact:
    return _build(ExpectedImpact, raw, EXPECTED_IMPACT_RULES, warnings)


def _score_breakdown(raw: Any, warnings: List[str]) -> Dict[str, ScoreComponent]:
    breakdown: Dict[str, ScoreComponent] = {}
    if not isinstance(raw, Mapping):
        return breakdown
    for name, component in raw.items():
        if component is None:
            continue
        # bare numbers are accepted as a component score
        score = component if coerce_number(component) is not None else read_field(component, 'score', 'value')
        breakdown[str(name)] = ScoreComponent(
            score=_number('percent', score, 0.0),
            weight=_number('probability', read_field(component, 'weight'), REFERENCE_SCORE_WEIGHTS.get(str(name), 0.0)),
        )
    return breakdown


def _improvement_path(raw: Any, warnings: List[str]) -> ImprovementPath:
    return _build(ImprovementPath, raw, IMPROVEMENT_PATH_RULES, warnings)


def _timestamp(raw: Any, warnings: List[str]) -> Optional[str]:
    if isinstance(raw, (datetime, date)):
        return raw.isoformat()
    return text_of(raw) or None


SCORE_IMPACT_RULES = (
    FieldRule('min', 'non_negative', fallback=0.0),
    FieldRule('max', 'non_negative', fallback=0.0),
)

ENGINE_VISIBILITY_RULES = tuple(
    FieldRule(engine, 'percent', fallback=0.0) for engine in ENGINES + ('weighted',)
)

CONSISTENCY_RULES = (
    FieldRule('consistency_score', 'percent', fallback=0.0, aliases=('consistencyScore',)),
    FieldRule('consistent_engines', 'string_list', aliases=('consistentEngines',)),
    FieldRule('inconsistent_engines', 'string_list', aliases=('inconsistentEngines',)),
    FieldRule('explanation', 'required_string', fallback='Pattern analysis unavailable'),
)

EXPECTED_IMPACT_RULES = (
    FieldRule('geo_score_improvement', 'optional_non_negative', aliases=('geoScoreImprovement',)),
    FieldRule('visibility_gain', 'optional_percent', aliases=('visibilityGain',)),
    FieldRule('trust_gain', 'optional_percent', aliases=('trustGain',)),
    FieldRule('commercial_value', 'optional_percent', aliases=('commercialValue',)),
    FieldRule('description', 'required_string', fallback='Impact analysis unavailable'),
)

IMPROVEMENT_PATH_RULES = (
    FieldRule('opportunity', 'required_string', fallback='Unknown', aliases=('title',)),
    FieldRule('impact', 'object', item=_score_impact, aliases=('geoScoreImpact', 'geo_score_impact')),
    FieldRule('difficulty', 'difficulty', fallback=DEFAULT_DIFFICULTY),
)


# --- stage output structures ---

INDUSTRY_RULES = (
    FieldRule('primary', 'required_string', fallback=UNKNOWN_INDUSTRY, aliases=('primaryIndustry', 'primary_industry')),
    FieldRule('secondary', 'string_list', aliases=('secondaryIndustries', 'secondary_industries')),
    _confidence(),
    FieldRule('evidence', 'mapping'),
)

BUSINESS_SUMMARY_RULES = (
    FieldRule('summary', 'required_string', fallback='Business information unavailable'),
    _confidence(),
    _evidence_list(),
)

PROMPT_RULES = (
    FieldRule('text', 'required_string', fallback='Unknown prompt', aliases=('prompt',)),
    FieldRule('intent', 'required_string', fallback='UNKNOWN'),
    FieldRule('commercial_intent', 'probability', fallback=0.0,
              aliases=('commercialIntent', 'commercial_value', 'commercialValue')),
    FieldRule('industry_relevance', 'probability', fallback=0.5, aliases=('industryRelevance',)),
    FieldRule('evidence', 'mapping'),
)

PROMPT_CLUSTER_RULES = (
    FieldRule('title', 'required_string', fallback='Untitled Cluster'),
    FieldRule('type', 'required_string', fallback='UNKNOWN', aliases=('clusterType',)),
    FieldRule('prompts', 'string_list'),
    FieldRule('value', 'percent', fallback=0.0),
    FieldRule('difficulty', 'difficulty', fallback=DEFAULT_DIFFICULTY),
    FieldRule('root_cause', 'string', fallback='', aliases=('rootCause',)),
    _confidence(),
    _evidence_list(),
)

COMPETITOR_RULES = (
    FieldRule('brand_name', 'required_string', fallback='Unknown', aliases=('brandName', 'name')),
    FieldRule('domain', 'string', fallback=''),
    FieldRule('type', 'required_string', fallback='direct'),
    _confidence(),
    FieldRule('visibility', 'mapping'),
)

SOV_RULES = (
    FieldRule('entity', 'required_string', fallback='Unknown', aliases=('brandName', 'brand_name', 'name')),
    FieldRule('share_of_voice', 'percent', fallback=0.0, aliases=('shareOfVoice', 'sov')),
    FieldRule('mentions', 'count', fallback=0, aliases=('mentionCount', 'mention_count')),
    _confidence(),
    _evidence_list(),
)

CITATION_RULES = (
    FieldRule('citations', 'array'),
    FieldRule('total', 'count', fallback=0, aliases=('totalCitations', 'total_citations')),
    _confidence(),
)

COMMERCIAL_VALUE_RULES = (
    FieldRule('cluster_title', 'string', fallback='', aliases=('clusterTitle',)),
    FieldRule('visibility_value_index', 'percent', fallback=0.0, aliases=('visibilityValueIndex',)),
    FieldRule('projected_visibility_gain', 'percent', fallback=0.0, aliases=('projectedVisibilityGain',)),
    FieldRule('commercial_opportunity_score', 'percent', fallback=0.0, aliases=('commercialOpportunityScore',)),
    _confidence(),
    _evidence_list(),
)

CROSS_ENGINE_RULES = (
    FieldRule('engines_recognizing', 'string_list', aliases=('enginesRecognizing',)),
    FieldRule('engines_suppressing', 'string_list', aliases=('enginesSuppressing',)),
    FieldRule('consistency_pattern', 'object', item=_consistency_pattern, aliases=('consistencyPattern',)),
    FieldRule('engine_confidence', 'object', item=_engine_confidence, aliases=('engineConfidence',)),
    _evidence_list(),
)

COMPETITOR_ANALYSIS_RULES = (
    FieldRule('competitor', 'required_string', fallback='Unknown', aliases=('competitorName', 'brandName', 'name')),
    FieldRule('structural_advantage_score', 'percent', fallback=0.0, aliases=('structuralAdvantageScore',)),
    FieldRule('structural_weakness_score', 'percent', fallback=0.0, aliases=('structuralWeaknessScore',)),
    FieldRule('advantages', 'string_list'),
    FieldRule('weaknesses', 'string_list'),
    _confidence(),
    _evidence_list(),
)

TRUST_FAILURE_RULES = (
    FieldRule('category', 'required_string', fallback='unknown'),
    FieldRule('description', 'required_string', fallback='Trust failure details unavailable'),
    FieldRule('severity', 'percent', fallback=0.0),
    _confidence(),
    _evidence_list(),
    FieldRule('recommended_fixes', 'string_list', aliases=('recommendedFixes',)),
)

FIX_DIFFICULTY_RULES = (
    FieldRule('cluster_title', 'string', fallback='', aliases=('clusterTitle',)),
    FieldRule('difficulty_score', 'difficulty', fallback=DEFAULT_DIFFICULTY, aliases=('difficultyScore',)),
    FieldRule('primary_constraints', 'string_list', aliases=('primaryConstraints',)),
    FieldRule('secondary_constraints', 'string_list', aliases=('secondaryConstraints',)),
    FieldRule('time_estimate', 'required_string', fallback='Unknown', aliases=('timeEstimate',)),
    _confidence(),
    _evidence_list(),
)

GEO_SCORE_RULES = (
    FieldRule('overall', 'percent', fallback=0.0, aliases=('total',)),
    FieldRule('breakdown', 'object', item=_score_breakdown),
    FieldRule('improvement_paths', 'array', item=_improvement_path, aliases=('improvementPaths',)),
    FieldRule('explanation', 'required_string', fallback='GEO Score analysis unavailable'),
)

OPPORTUNITY_RULES = (
    FieldRule('title', 'required_string', fallback='Untitled Opportunity'),
    FieldRule('ai_visibility', 'object', item=_engine_visibility, aliases=('aiVisibility',)),
    FieldRule('competitors', 'array'),
    FieldRule('why_you_are_losing', 'required_string', fallback='Analysis unavailable', aliases=('whyYouAreLosing',)),
    FieldRule('opportunity_impact', 'percent', fallback=0.0, aliases=('opportunityImpact',)),
    FieldRule('difficulty', 'difficulty', fallback=DEFAULT_DIFFICULTY),
    FieldRule('value', 'percent', fallback=0.0),
    FieldRule('action_steps', 'min_string_list', aliases=('actionSteps',), minimum=3,
              padding=OPPORTUNITY_STEP_PADDING),
    FieldRule('evidence', 'object', item=_engine_evidence),
    _confidence(),
    FieldRule('warnings', 'string_list'),
    FieldRule('geo_score_impact', 'object', item=_score_impact, aliases=('geoScoreImpact',)),
)

RECOMMENDATION_RULES = (
    FieldRule('id', 'string', fallback=''),
    FieldRule('title', 'required_string', fallback='Untitled Recommendation'),
    FieldRule('description', 'required_string', fallback='No description available'),
    FieldRule('category', 'required_string', fallback='technical'),
    FieldRule('priority', 'enum', fallback='medium', allowed=PRIORITIES),
    FieldRule('difficulty', 'enum', fallback='medium', allowed=DIFFICULTIES),
    FieldRule('time_estimate', 'required_string', fallback='Unknown', aliases=('timeEstimate',)),
    FieldRule('expected_impact', 'object', item=_expected_impact, aliases=('expectedImpact',)),
    FieldRule('steps', 'min_string_list', minimum=3, padding=RECOMMENDATION_STEP_PADDING),
    FieldRule('related_trust_failures', 'array', aliases=('relatedTrustFailures',)),
    FieldRule('related_competitors', 'array', aliases=('relatedCompetitors',)),
    FieldRule('related_prompt_clusters', 'array', aliases=('relatedPromptClusters',)),
    _evidence_list(),
    _confidence(),
    FieldRule('reasoning', 'required_string', fallback='Reasoning unavailable'),
)

METADATA_RULES = (
    FieldRule('generated_at', 'object', item=_timestamp, aliases=('generatedAt',)),
    FieldRule('service_version', 'required_string', fallback=SERVICE_VERSION, aliases=('serviceVersion',)),
    FieldRule('industry', 'required_string', fallback=UNKNOWN_INDUSTRY),
    _confidence(),
    FieldRule('warnings', 'string_list'),
    FieldRule('errors', 'string_list'),
    FieldRule('failed_stages', 'string_list', aliases=('failedStages', 'failed_steps', 'failedSteps')),
)


def _struct(cls: type, rules: Sequence[FieldRule]) -> Callable[[Any, List[str]], Any]:
    def build(raw: Any, warnings: List[str]) -> Any:
        return _build(cls, raw, rules, warnings)
    return build


def _prompt(raw: Any, warnings: List[str]) -> Prompt:
    if isinstance(raw, str):
        raw = {'text': raw}
    return _build(Prompt, raw, PROMPT_RULES, warnings)


def _competitor(raw: Any, warnings: List[str]) -> Competitor:
    if isinstance(raw, str):
        raw = {'brand_name': raw}
    return _build(Competitor, raw, COMPETITOR_RULES, warnings)


def recommendation_id(index: int, title: str) -> str:
    digest = hashlib.sha1(f"{index}:{title}".encode("utf-8")).hexdigest()
    return f"rec-{digest[:12]}"


RESPONSE_RULES = (
    FieldRule('workspace_id', 'string', fallback='', aliases=('workspaceId',)),
    FieldRule('brand_name', 'string', fallback='', aliases=('brandName',)),
    FieldRule('domain', 'string', fallback=''),
    FieldRule('industry', 'object', item=_struct(IndustryContext, INDUSTRY_RULES)),
    FieldRule('business_summary', 'object', item=_struct(BusinessSummary, BUSINESS_SUMMARY_RULES),
              aliases=('businessSummary',)),
    FieldRule('prompts', 'array', item=_prompt),
    FieldRule('prompt_clusters', 'array', item=_struct(PromptCluster, PROMPT_CLUSTER_RULES),
              aliases=('promptClusters',)),
    FieldRule('competitors', 'array', item=_competitor),
    FieldRule('sov_analysis', 'array', item=_struct(ShareOfVoiceEntry, SOV_RULES), aliases=('sovAnalysis',)),
    FieldRule('citations', 'object', item=_struct(CitationReport, CITATION_RULES)),
    FieldRule('commercial_values', 'array', item=_struct(CommercialValue, COMMERCIAL_VALUE_RULES),
              aliases=('commercialValues',)),
    FieldRule('cross_engine_patterns', 'object', item=_struct(CrossEnginePatterns, CROSS_ENGINE_RULES),
              aliases=('crossEnginePatterns',)),
    FieldRule('competitor_analyses', 'array', item=_struct(CompetitorAnalysis, COMPETITOR_ANALYSIS_RULES),
              aliases=('competitorAnalyses',)),
    FieldRule('trust_failures', 'array', item=_struct(TrustFailure, TRUST_FAILURE_RULES),
              aliases=('trustFailures',)),
    FieldRule('fix_difficulties', 'array', item=_struct(FixDifficulty, FIX_DIFFICULTY_RULES),
              aliases=('fixDifficulties',)),
    FieldRule('geo_score', 'object', item=_struct(CompositeScore, GEO_SCORE_RULES), aliases=('geoScore',)),
    FieldRule('opportunities', 'array', item=_struct(Opportunity, OPPORTUNITY_RULES)),
    FieldRule('recommendations', 'array', item=_struct(Recommendation, RECOMMENDATION_RULES)),
)


class ResponseSanitizer:
    """Pure normalization of a raw or sanitized response; never raises on bad data."""

    def sanitize(self, raw: Any) -> IntelligenceResponse:
        warnings: List[str] = []
        values = {rule.field: _apply(rule, raw, warnings, 'Response') for rule in RESPONSE_RULES}
        values['recommendations'] = [
            rec if rec.id else replace(rec, id=recommendation_id(i, rec.title))
            for i, rec in enumerate(values['recommendations'])
        ]

        metadata: ResponseMetadata = _build(ResponseMetadata, read_field(raw, 'metadata'), METADATA_RULES, [])
        if warnings:
            logger.debug("Sanitizer padded list fields", extra={"count": len(warnings)})
        metadata = replace(metadata, warnings=unique(metadata.warnings + warnings))

        return IntelligenceResponse(metadata=metadata, **values)
