import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from intelligence.core.config import SERVICE_VERSION
from intelligence.core.fields import unique
from intelligence.core.types import (
    SCORE_COMPONENT_LABELS,
    CompositeScore,
    ImprovementPath,
    IntelligenceResponse,
    Opportunity,
    OrchestrationMetrics,
    ScoreImpact,
    ValidationResult,
)
from intelligence.orchestration.stages import GEO_SCORE

logger = logging.getLogger(__name__)


class ResponseAssembler:
    """Finishes a sanitized response: score narrative, improvement paths and metadata.

    Every method returns a new response; inputs are never mutated.
    """

    # Opportunities surfaced as improvement paths on the composite score
    IMPROVEMENT_PATH_LIMIT = 5

    def assemble(
        self,
        sanitized: IntelligenceResponse,
        confidence: float,
        metrics: OrchestrationMetrics,
        generated_at: Optional[str] = None,
    ) -> IntelligenceResponse:
        score_available = GEO_SCORE not in metrics.failed_steps
        geo_score = replace(
            sanitized.geo_score,
            improvement_paths=self.improvement_paths(sanitized.opportunities),
            explanation=self.explain(sanitized.geo_score, sanitized.opportunities, score_available),
        )
        metadata = replace(
            sanitized.metadata,
            generated_at=generated_at or sanitized.metadata.generated_at or datetime.now().isoformat(),
            service_version=SERVICE_VERSION,
            industry=sanitized.industry.primary,
            confidence=confidence,
            warnings=unique(sanitized.metadata.warnings + metrics.warnings),
            failed_stages=list(metrics.failed_steps),
        )
        logger.debug("Assembled response", extra={"confidence": confidence, "failed_stages": metadata.failed_stages})
        return replace(sanitized, geo_score=geo_score, metadata=metadata)

    def attach_validation(self, response: IntelligenceResponse, validation: ValidationResult) -> IntelligenceResponse:
        metadata = replace(
            response.metadata,
            warnings=unique(response.metadata.warnings + validation.warnings),
            errors=unique(response.metadata.errors + validation.errors),
        )
        return replace(response, metadata=metadata)

    def improvement_paths(self, opportunities: List[Opportunity]) -> List[ImprovementPath]:
        return [
            ImprovementPath(
                opportunity=opp.title or 'Unknown',
                impact=ScoreImpact(min=opp.geo_score_impact.min, max=opp.geo_score_impact.max),
                difficulty=opp.difficulty,
            )
            for opp in opportunities[:self.IMPROVEMENT_PATH_LIMIT]
        ]

    @staticmethod
    def explain(geo_score: CompositeScore, opportunities: List[Opportunity], score_available: bool = True) -> str:
        """One-paragraph narrative of the composite score and the top opportunity."""
        if score_available:
            parts = [f"Current GEO Score: {geo_score.overall:g}/100"]
        else:
            parts = ["GEO Score: Unable to compute"]

        components = [
            f"{label}: {geo_score.breakdown[name].score:g}/100"
            for name, label in SCORE_COMPONENT_LABELS.items()
            if name in geo_score.breakdown
        ]
        if components:
            parts.append(f"Components: {', '.join(components)}")

        if opportunities:
            top = opportunities[0]
            impact = top.geo_score_impact
            parts.append(
                f'Top opportunity: "{top.title}" - Potential improvement: {impact.min:g}-{impact.max:g} points'
            )
        return '. '.join(parts)
