"""Deterministic overall-confidence scoring for an intelligence response."""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from intelligence.core.config import ConfidenceConfig
from intelligence.core.fields import as_list, clamp, coerce_number, read_field
from intelligence.core.types import OrchestrationMetrics

logger = logging.getLogger(__name__)


@dataclass
class ConfidenceSignals:
    """Inputs to the overall confidence heuristic."""
    industry_confidence: float = 0.0
    summary_confidence: float = 0.0
    competitor_count: int = 0
    trust_failure_count: int = 0

    @classmethod
    def from_response(cls, response: Any) -> 'ConfidenceSignals':
        def _conf(section: str, alias: str) -> float:
            value = coerce_number(read_field(read_field(response, section, alias), 'confidence'))
            return value if value is not None else 0.0

        return cls(
            industry_confidence=_conf('industry', 'industry'),
            summary_confidence=_conf('business_summary', 'businessSummary'),
            competitor_count=len(as_list(read_field(response, 'competitors'))),
            trust_failure_count=len(as_list(read_field(response, 'trust_failures', 'trustFailures'))),
        )


class ConfidenceAggregator:
    """
    Combines upstream signals into a single [0,1] confidence.

    base
      + bonus if industry confidence > threshold
      + bonus if business-summary confidence > threshold
      + bonus if any competitor was found
      + trust_failure_bonus if any trust failure was found
      - failure_penalty_weight * failed_steps / total_steps
    """

    def __init__(self, config: Optional[ConfidenceConfig] = None):
        self.config = config or ConfidenceConfig()

    def aggregate(self, signals: ConfidenceSignals, metrics: OrchestrationMetrics, total_steps: int) -> float:
        cfg = self.config
        confidence = cfg.base

        if signals.industry_confidence > cfg.high_confidence_threshold:
            confidence += cfg.bonus
        if signals.summary_confidence > cfg.high_confidence_threshold:
            confidence += cfg.bonus
        if signals.competitor_count > 0:
            confidence += cfg.bonus
        if signals.trust_failure_count > 0:
            confidence += cfg.trust_failure_bonus

        confidence -= cfg.failure_penalty_weight * metrics.failure_ratio(total_steps)

        result = round(clamp(confidence, 0.0, 1.0), 4)
        logger.debug(
            "Aggregated confidence",
            extra={"confidence": result, "failed_steps": len(metrics.failed_steps), "total_steps": total_steps},
        )
        return result
