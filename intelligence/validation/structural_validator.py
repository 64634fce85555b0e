import logging
from typing import Any, List, Optional

from intelligence.core.config import ValidationConfig
from intelligence.core.fields import as_list, coerce_number, is_in_range, read_field, text_of
from intelligence.core.types import (
    COMPETITIVE_INDUSTRIES,
    DIFFICULTIES,
    ENGINES,
    PRIORITIES,
    REFERENCE_SCORE_WEIGHTS,
    DataQualityResult,
    ValidationResult,
)

logger = logging.getLogger(__name__)

# (response field, camelCase alias, label) for list sections whose items carry a confidence
_CONFIDENCE_LISTS = (
    ('prompt_clusters', 'promptClusters', 'Prompt cluster'),
    ('competitors', 'competitors', 'Competitor'),
    ('sov_analysis', 'sovAnalysis', 'SOV entry'),
    ('commercial_values', 'commercialValues', 'Commercial value'),
    ('competitor_analyses', 'competitorAnalyses', 'Competitor analysis'),
    ('trust_failures', 'trustFailures', 'Trust failure'),
    ('fix_difficulties', 'fixDifficulties', 'Fix difficulty'),
    ('opportunities', 'opportunities', 'Opportunity'),
    ('recommendations', 'recommendations', 'Recommendation'),
)


def is_competitive_industry(industry: Any) -> bool:
    label = text_of(industry).lower()
    return bool(label) and any(keyword in label for keyword in COMPETITIVE_INDUSTRIES)


class StructuralValidator:
    """
    Structural and sanity checks over an assembled intelligence response.

    Errors are contract violations (missing identity, out-of-range confidence,
    unusable score); warnings flag suspicious but usable content. Works on the
    sanitized dataclasses or on a raw mapping with camelCase keys.

    Neither method raises on malformed input; problems are reported as data.
    """

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or ValidationConfig()

    def validate(self, response: Any) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        self._check_identity(response, errors)
        self._check_confidences(response, errors)
        self._check_prompts(response, warnings)
        self._check_competitors(response, warnings)
        self._check_geo_score(read_field(response, 'geo_score', 'geoScore'), errors, warnings)
        for i, opp in enumerate(as_list(read_field(response, 'opportunities'))):
            self._check_opportunity(opp, i, warnings)
        for i, rec in enumerate(as_list(read_field(response, 'recommendations'))):
            self._check_recommendation(rec, i, warnings)

        result = ValidationResult(valid=not errors, errors=errors, warnings=warnings)
        extra = {"errors": len(errors), "warnings": len(warnings)}
        if errors:
            logger.warning("Response failed structural validation", extra=extra)
        else:
            logger.info("Response passed structural validation", extra=extra)
        return result

    def validate_data_quality(self, response: Any) -> DataQualityResult:
        cfg = self.config
        issues: List[str] = []

        prompts = as_list(read_field(response, 'prompts'))
        if len(prompts) < cfg.min_prompts:
            issues.append(f"Only {len(prompts)} prompts generated (expected at least {cfg.min_prompts})")

        industry = read_field(read_field(response, 'industry'), 'primary', 'primaryIndustry')
        competitors = as_list(read_field(response, 'competitors'))
        if is_competitive_industry(industry) and len(competitors) < cfg.min_competitors:
            issues.append(
                f"Only {len(competitors)} competitors found for competitive industry "
                f"(expected at least {cfg.min_competitors})"
            )

        opportunities = as_list(read_field(response, 'opportunities'))
        if not opportunities:
            issues.append("No visibility opportunities generated")
        elif len(opportunities) < cfg.min_opportunities:
            issues.append(
                f"Only {len(opportunities)} opportunities generated "
                f"(expected at least {cfg.min_opportunities} for comprehensive analysis)"
            )

        recommendations = as_list(read_field(response, 'recommendations'))
        if not recommendations:
            issues.append("No recommendations generated")
        elif len(recommendations) < cfg.min_recommendations:
            issues.append(
                f"Only {len(recommendations)} recommendations generated (expected at least {cfg.min_recommendations})"
            )

        confidence = coerce_number(read_field(read_field(response, 'metadata'), 'confidence'))
        if confidence is None or confidence < cfg.min_confidence:
            issues.append(f"Low overall confidence: {confidence} (expected at least {cfg.min_confidence})")

        return DataQualityResult(meets_threshold=not issues, issues=issues)

    # --- checks ---

    @staticmethod
    def _check_identity(response: Any, errors: List[str]) -> None:
        for field, alias in (('workspace_id', 'workspaceId'), ('brand_name', 'brandName'), ('domain', 'domain')):
            if not text_of(read_field(response, field, alias)):
                errors.append(f"Missing {field}")
        industry = read_field(response, 'industry')
        if not text_of(read_field(industry, 'primary', 'primaryIndustry')):
            errors.append("Missing industry.primary")

    @staticmethod
    def _check_confidence(value: Any, label: str, errors: List[str]) -> None:
        # absent confidences are tolerated; present ones must be in [0,1]
        if value is not None and not is_in_range(value, 0.0, 1.0):
            errors.append(f"Invalid {label} confidence: {value} (must be 0-1)")

    def _check_confidences(self, response: Any, errors: List[str]) -> None:
        for field, alias, label in (
            ('metadata', 'metadata', 'metadata'),
            ('industry', 'industry', 'industry'),
            ('business_summary', 'businessSummary', 'business summary'),
            ('citations', 'citations', 'citations'),
        ):
            section = read_field(response, field, alias)
            self._check_confidence(read_field(section, 'confidence'), label, errors)

        patterns = read_field(response, 'cross_engine_patterns', 'crossEnginePatterns')
        engine_confidence = read_field(patterns, 'engine_confidence', 'engineConfidence')
        for engine in ENGINES:
            self._check_confidence(read_field(engine_confidence, engine), f"{engine} engine", errors)

        for field, alias, label in _CONFIDENCE_LISTS:
            for i, item in enumerate(as_list(read_field(response, field, alias))):
                self._check_confidence(read_field(item, 'confidence'), f"{label} {i}", errors)

    @staticmethod
    def _check_prompts(response: Any, warnings: List[str]) -> None:
        prompts = as_list(read_field(response, 'prompts'))
        if not prompts:
            warnings.append("No prompts generated - this may indicate data availability issues")
            return
        for i, prompt in enumerate(prompts):
            text = prompt if isinstance(prompt, str) else read_field(prompt, 'text')
            if not text_of(text):
                warnings.append(f"Prompt {i} has empty text")

    @staticmethod
    def _check_competitors(response: Any, warnings: List[str]) -> None:
        industry = read_field(read_field(response, 'industry'), 'primary', 'primaryIndustry')
        if is_competitive_industry(industry) and not as_list(read_field(response, 'competitors')):
            warnings.append(f"No competitors found for competitive industry: {industry}")

    def _check_geo_score(self, geo_score: Any, errors: List[str], warnings: List[str]) -> None:
        if geo_score is None:
            errors.append("Missing geoScore")
            return

        total = coerce_number(read_field(geo_score, 'overall', 'total'))
        if total is None:
            errors.append("GEO Score total must be a number")
        elif not is_in_range(total, 0.0, 100.0):
            errors.append(f"GEO Score total out of range: {total} (expected 0-100)")

        breakdown = read_field(geo_score, 'breakdown')
        if not breakdown or not hasattr(breakdown, 'items'):
            return

        weighted_sum = 0.0
        for name, component in breakdown.items():
            score = coerce_number(component)
            if score is None:
                score = coerce_number(read_field(component, 'score'))
            if score is None:
                continue
            if not 0.0 <= score <= 100.0:
                warnings.append(f"{name} score out of range: {score}")
            weight = coerce_number(read_field(component, 'weight'))
            if weight is None:
                weight = REFERENCE_SCORE_WEIGHTS.get(name, 0.0)
            weighted_sum += weight * score

        if total is not None and abs(weighted_sum - total) > self.config.score_tolerance:
            warnings.append(
                f"GEO Score formula mismatch: total={total:g}, weighted sum={weighted_sum:.2f}. "
                f"Expected components to sum to approximately {total:g}"
            )

    def _check_opportunity(self, opp: Any, index: int, warnings: List[str]) -> None:
        prefix = f"Opportunity {index}"
        if not text_of(read_field(opp, 'title')):
            warnings.append(f"{prefix}: Missing title")

        visibility = read_field(opp, 'ai_visibility', 'aiVisibility')
        if visibility is None:
            warnings.append(f"{prefix}: Missing aiVisibility")
        else:
            for engine in ENGINES:
                score = read_field(visibility, engine)
                if not is_in_range(score, 0.0, 100.0):
                    warnings.append(f"{prefix}: Invalid {engine} visibility: {score}")

        steps = as_list(read_field(opp, 'action_steps', 'actionSteps'))
        if len(steps) < self.config.min_action_steps:
            warnings.append(
                f"{prefix}: Should have at least {self.config.min_action_steps} action steps, found {len(steps)}"
            )

        for field, alias in (('opportunity_impact', 'opportunityImpact'), ('difficulty', 'difficulty'),
                             ('value', 'value')):
            value = read_field(opp, field, alias)
            if not is_in_range(value, 0.0, 100.0):
                warnings.append(f"{prefix}: Invalid {alias}: {value}")

    def _check_recommendation(self, rec: Any, index: int, warnings: List[str]) -> None:
        prefix = f"Recommendation {index}"
        for field in ('id', 'title', 'description'):
            if not text_of(read_field(rec, field)):
                warnings.append(f"{prefix}: Missing {field}")

        steps = as_list(read_field(rec, 'steps'))
        if len(steps) < self.config.min_action_steps:
            warnings.append(
                f"{prefix}: Should have at least {self.config.min_action_steps} steps, found {len(steps)}"
            )

        priority = read_field(rec, 'priority')
        if priority not in PRIORITIES:
            warnings.append(f"{prefix}: Invalid priority: {priority}")
        difficulty = read_field(rec, 'difficulty')
        if difficulty not in DIFFICULTIES:
            warnings.append(f"{prefix}: Invalid difficulty: {difficulty}")
