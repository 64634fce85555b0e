from datetime import datetime
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any, Callable, Tuple

import pandas as pd

# AI answer engines measured for brand visibility
ENGINES: Tuple[str, ...] = ("chatgpt", "claude", "gemini", "perplexity")

# Composite (GEO) score reference weighting:
# 35% AI Visibility + 25% EEAT + 15% Citations + 15% Competitor Comparison + 10% Schema/Technical
REFERENCE_SCORE_WEIGHTS: Dict[str, float] = {
    "aiVisibility": 0.35,
    "eeat": 0.25,
    "citations": 0.15,
    "competitorComparison": 0.15,
    "schemaTechnical": 0.10,
}

SCORE_COMPONENT_LABELS: Dict[str, str] = {
    "aiVisibility": "Visibility",
    "eeat": "EEAT",
    "citations": "Citations",
    "competitorComparison": "Competitors",
    "schemaTechnical": "Schema",
}

PRIORITIES: Tuple[str, ...] = ("critical", "high", "medium", "low")
DIFFICULTIES: Tuple[str, ...] = ("easy", "medium", "hard")
DIFFICULTY_LABEL_SCORES: Dict[str, float] = {"easy": 30.0, "medium": 60.0, "hard": 90.0}

# Industries where an empty competitor set is suspicious (substring match, lowercase)
COMPETITIVE_INDUSTRIES: Tuple[str, ...] = (
    "travel", "e-commerce", "ecommerce", "saas", "hotel", "hospitality", "restaurant", "booking",
)

UNKNOWN_INDUSTRY = "Unknown"


# --- Request-level inputs ---
@dataclass
class OrchestrationOptions:
    """Caller switches for one orchestration run."""
    include_opportunities: bool = True
    include_recommendations: bool = True
    max_opportunities: int = 50

    @classmethod
    def from_value(cls, value: Any, default_max_opportunities: int = 50) -> 'OrchestrationOptions':
        """Accept an OrchestrationOptions, a dict (snake_case or camelCase) or None."""
        if isinstance(value, OrchestrationOptions):
            return value
        value = value or {}

        def _pick(snake: str, camel: str, default: Any) -> Any:
            if snake in value:
                return value[snake]
            return value.get(camel, default)

        max_opps = _pick('max_opportunities', 'maxOpportunities', default_max_opportunities)
        try:
            max_opps = max(0, int(max_opps))
        except (TypeError, ValueError):
            max_opps = default_max_opportunities
        return cls(
            include_opportunities=bool(_pick('include_opportunities', 'includeOpportunities', True)),
            include_recommendations=bool(_pick('include_recommendations', 'includeRecommendations', True)),
            max_opportunities=max_opps,
        )

    def cache_key(self) -> Tuple[bool, bool, int]:
        return (self.include_opportunities, self.include_recommendations, self.max_opportunities)


@dataclass
class BrandContext:
    """Context handed to the prompt generator."""
    brand_name: str
    industry: str
    category: str
    vertical: str
    services: List[str] = field(default_factory=list)
    market_type: str = "B2C"  # "B2B" | "B2C" | "B2B2C" | "Marketplace"
    service_type: str = "Hybrid"  # "Product" | "Service" | "Platform" | "Hybrid"


# --- Stage plumbing ---
@dataclass(frozen=True)
class StageDefinition:
    """One named unit of work in the pipeline.

    `compute(inputs)` receives only the outputs of `depends_on` stages;
    `default_factory()` supplies the value used when compute fails.
    """
    key: str
    label: str
    depends_on: Tuple[str, ...]
    compute: Callable[[Dict[str, Any]], Any]
    default_factory: Callable[[], Any]


@dataclass(frozen=True)
class StageExecutionResult:
    """Outcome of a single stage invocation."""
    key: str
    success: bool
    data: Any = None
    error_message: Optional[str] = None
    duration_ms: float = 0.0


@dataclass
class OrchestrationMetrics:
    """Per-request execution record; discarded once the response is returned."""
    total_duration_ms: float = 0.0
    per_step_duration_ms: Dict[str, float] = field(default_factory=dict)
    successful_steps: List[str] = field(default_factory=list)
    failed_steps: List[str] = field(default_factory=list)
    skipped_steps: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def record(self, result: StageExecutionResult) -> None:
        self.per_step_duration_ms[result.key] = result.duration_ms
        target = self.successful_steps if result.success else self.failed_steps
        if result.key not in target:
            target.append(result.key)

    def skip(self, key: str) -> None:
        if key not in self.skipped_steps:
            self.skipped_steps.append(key)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def failure_ratio(self, total_steps: int) -> float:
        if total_steps <= 0:
            return 0.0
        return len(self.failed_steps) / total_steps

    def to_frame(self) -> pd.DataFrame:
        """Per-stage timing/status table, one row per executed or skipped stage."""
        rows = []
        for key, duration in self.per_step_duration_ms.items():
            rows.append({
                'stage': key,
                'duration_ms': duration,
                'status': 'failed' if key in self.failed_steps else 'ok',
            })
        for key in self.skipped_steps:
            rows.append({'stage': key, 'duration_ms': 0.0, 'status': 'skipped'})
        return pd.DataFrame(rows, columns=['stage', 'duration_ms', 'status'])


@dataclass(frozen=True)
class FieldRule:
    """Declarative constraint applied to one field of a stage output.

    kind: percent | probability | non_negative | count | difficulty |
          optional_percent | optional_non_negative | array | string_list |
          min_string_list | enum | required_string | string | mapping | object
    """
    field: str
    kind: str
    fallback: Any = None
    aliases: Tuple[str, ...] = ()
    minimum: int = 0
    allowed: Tuple[str, ...] = ()
    padding: Tuple[str, ...] = ()
    item: Optional[Callable[..., Any]] = None


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class DataQualityResult:
    meets_threshold: bool
    issues: List[str] = field(default_factory=list)


# --- Sanitized stage outputs ---
@dataclass
class IndustryContext:
    primary: str = UNKNOWN_INDUSTRY
    secondary: List[str] = field(default_factory=list)
    confidence: float = 0.5
    evidence: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BusinessSummary:
    summary: str = "Business information unavailable"
    confidence: float = 0.3
    evidence: List[Any] = field(default_factory=list)


@dataclass
class Prompt:
    text: str
    intent: str = "UNKNOWN"
    commercial_intent: float = 0.0  # 0-1
    industry_relevance: float = 0.5  # 0-1
    evidence: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PromptCluster:
    title: str
    type: str = "UNKNOWN"
    prompts: List[str] = field(default_factory=list)
    value: float = 0.0  # 0-100
    difficulty: float = 50.0  # 0-100
    root_cause: str = ""
    confidence: float = 0.5
    evidence: List[Any] = field(default_factory=list)


@dataclass
class Competitor:
    brand_name: str
    domain: str = ""
    type: str = "direct"
    confidence: float = 0.5
    visibility: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ShareOfVoiceEntry:
    entity: str
    share_of_voice: float = 0.0  # 0-100
    mentions: int = 0
    confidence: float = 0.5
    evidence: List[Any] = field(default_factory=list)


@dataclass
class CitationReport:
    citations: List[Any] = field(default_factory=list)
    total: int = 0
    confidence: float = 0.3


@dataclass
class CommercialValue:
    cluster_title: str = ""
    visibility_value_index: float = 0.0  # 0-100
    projected_visibility_gain: float = 0.0  # 0-100
    commercial_opportunity_score: float = 0.0  # 0-100
    confidence: float = 0.3
    evidence: List[Any] = field(default_factory=list)


@dataclass
class ConsistencyPattern:
    consistency_score: float = 0.0  # 0-100
    consistent_engines: List[str] = field(default_factory=list)
    inconsistent_engines: List[str] = field(default_factory=list)
    explanation: str = "Pattern analysis unavailable"


@dataclass
class CrossEnginePatterns:
    engines_recognizing: List[str] = field(default_factory=list)
    engines_suppressing: List[str] = field(default_factory=list)
    consistency_pattern: ConsistencyPattern = field(default_factory=ConsistencyPattern)
    engine_confidence: Dict[str, float] = field(default_factory=lambda: {e: 0.3 for e in ENGINES})
    evidence: List[Any] = field(default_factory=list)


@dataclass
class CompetitorAnalysis:
    competitor: str
    structural_advantage_score: float = 0.0  # 0-100
    structural_weakness_score: float = 0.0  # 0-100
    advantages: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    confidence: float = 0.3
    evidence: List[Any] = field(default_factory=list)


@dataclass
class TrustFailure:
    category: str = "unknown"
    description: str = "Trust failure details unavailable"
    severity: float = 0.0  # 0-100
    confidence: float = 0.5
    evidence: List[Any] = field(default_factory=list)
    recommended_fixes: List[str] = field(default_factory=list)


@dataclass
class FixDifficulty:
    cluster_title: str = ""
    difficulty_score: float = 50.0  # 0-100
    primary_constraints: List[str] = field(default_factory=list)
    secondary_constraints: List[str] = field(default_factory=list)
    time_estimate: str = "Unknown"
    confidence: float = 0.3
    evidence: List[Any] = field(default_factory=list)


@dataclass
class ScoreComponent:
    score: float = 0.0  # 0-100
    weight: float = 0.0  # 0-1


@dataclass
class ScoreImpact:
    min: float = 0.0
    max: float = 0.0


@dataclass
class ImprovementPath:
    opportunity: str
    impact: ScoreImpact = field(default_factory=ScoreImpact)
    difficulty: float = 50.0  # 0-100


@dataclass
class CompositeScore:
    """GEO score: overall ≈ Σ weight·score across breakdown components."""
    overall: float = 0.0  # 0-100
    breakdown: Dict[str, ScoreComponent] = field(default_factory=dict)
    improvement_paths: List[ImprovementPath] = field(default_factory=list)
    explanation: str = "GEO Score analysis unavailable"


@dataclass
class EngineVisibility:
    chatgpt: float = 0.0
    claude: float = 0.0
    gemini: float = 0.0
    perplexity: float = 0.0
    weighted: float = 0.0


@dataclass
class Opportunity:
    title: str
    ai_visibility: EngineVisibility = field(default_factory=EngineVisibility)
    competitors: List[Any] = field(default_factory=list)
    why_you_are_losing: str = "Analysis unavailable"
    opportunity_impact: float = 0.0  # 0-100
    difficulty: float = 50.0  # 0-100
    value: float = 0.0  # 0-100
    action_steps: List[str] = field(default_factory=list)  # at least 3
    evidence: Dict[str, List[Any]] = field(default_factory=lambda: {e: [] for e in ENGINES})
    confidence: float = 0.5
    warnings: List[str] = field(default_factory=list)
    geo_score_impact: ScoreImpact = field(default_factory=ScoreImpact)


@dataclass
class ExpectedImpact:
    geo_score_improvement: Optional[float] = None
    visibility_gain: Optional[float] = None
    trust_gain: Optional[float] = None
    commercial_value: Optional[float] = None
    description: str = "Impact analysis unavailable"


@dataclass
class Recommendation:
    id: str
    title: str
    description: str = "No description available"
    category: str = "technical"
    priority: str = "medium"  # critical | high | medium | low
    difficulty: str = "medium"  # easy | medium | hard
    time_estimate: str = "Unknown"
    expected_impact: ExpectedImpact = field(default_factory=ExpectedImpact)
    steps: List[str] = field(default_factory=list)  # at least 3
    related_trust_failures: List[Any] = field(default_factory=list)
    related_competitors: List[Any] = field(default_factory=list)
    related_prompt_clusters: List[Any] = field(default_factory=list)
    evidence: List[Any] = field(default_factory=list)
    confidence: float = 0.5
    reasoning: str = "Reasoning unavailable"


@dataclass
class ResponseMetadata:
    generated_at: Optional[str] = None  # ISO-8601
    service_version: str = "2.0.0"
    industry: str = UNKNOWN_INDUSTRY
    confidence: float = 0.5
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    failed_stages: List[str] = field(default_factory=list)


@dataclass
class IntelligenceResponse:
    """Assembled visibility intelligence report for one workspace."""
    workspace_id: str
    brand_name: str
    domain: str
    industry: IndustryContext = field(default_factory=IndustryContext)
    business_summary: BusinessSummary = field(default_factory=BusinessSummary)
    prompts: List[Prompt] = field(default_factory=list)
    prompt_clusters: List[PromptCluster] = field(default_factory=list)
    competitors: List[Competitor] = field(default_factory=list)
    sov_analysis: List[ShareOfVoiceEntry] = field(default_factory=list)
    citations: CitationReport = field(default_factory=CitationReport)
    commercial_values: List[CommercialValue] = field(default_factory=list)
    cross_engine_patterns: CrossEnginePatterns = field(default_factory=CrossEnginePatterns)
    competitor_analyses: List[CompetitorAnalysis] = field(default_factory=list)
    trust_failures: List[TrustFailure] = field(default_factory=list)
    fix_difficulties: List[FixDifficulty] = field(default_factory=list)
    geo_score: CompositeScore = field(default_factory=CompositeScore)
    opportunities: List[Opportunity] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)

    @property
    def is_complete(self) -> bool:
        return not self.metadata.errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class IntelligenceReport:
    """What a request handler hands back: response plus transport hints."""
    response: IntelligenceResponse
    status_code: int
    data_quality: DataQualityResult
    cached: bool = False
    created_at: str = None

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now().isoformat()
