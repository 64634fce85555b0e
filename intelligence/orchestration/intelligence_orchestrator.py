import time
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from functools import partial
from typing import Any, Dict, List, Optional, Tuple

from intelligence.core.config import AppConfig
from intelligence.core.fields import as_list, is_in_range, read_field, text_of, unique
from intelligence.core.types import (
    UNKNOWN_INDUSTRY,
    BrandContext,
    IntelligenceResponse,
    OrchestrationMetrics,
    OrchestrationOptions,
    StageDefinition,
)
from intelligence.orchestration.collaborators import IntelligenceCollaborators
from intelligence.orchestration.fan_out import FanOutExecutor, FanOutResult
from intelligence.orchestration.response_assembler import ResponseAssembler
from intelligence.orchestration.stage_runner import StageRunner
from intelligence.orchestration import stages as st
from intelligence.validation.confidence import ConfidenceAggregator, ConfidenceSignals
from intelligence.validation.sanitizer import ResponseSanitizer
from intelligence.validation.structural_validator import StructuralValidator

logger = logging.getLogger(__name__)


@dataclass
class _Request:
    """Per-call state shared by the stage compute functions."""
    workspace_id: str
    brand_name: str
    domain: str
    options: OrchestrationOptions
    metrics: OrchestrationMetrics = field(default_factory=OrchestrationMetrics)


class IntelligenceOrchestrator:
    """
    Runs the 15-stage GEO visibility pipeline and assembles one response.

    Pipeline stages (in order):
    1.  Industry Detection             9.  Cross-Engine Pattern Recognition
    2.  Business Summary               10. Competitor Advantage Analysis (per competitor)
    3.  Prompt Generation              11. Trust Failure Detection
    4.  Prompt Clustering              12. Fix Difficulty Scoring (per cluster)
    5.  Competitor Detection           13. GEO Score Computation
    6.  SOV Analysis                   14. Visibility Opportunities Generation
    7.  Citation Analysis              15. Recommendations Generation
    8.  Commercial Value Scoring (per cluster)

    Every stage runs through the StageRunner. A failed stage is replaced by its
    default and recorded as a warning; the pipeline always continues. The
    assembled response is sanitized, scored for confidence and validated, and
    `orchestrate` never raises.
    """

    TOTAL_STEPS = len(st.STAGE_ORDER)

    def __init__(
        self,
        collaborators: Optional[IntelligenceCollaborators] = None,
        config: Optional[AppConfig] = None,
        runner: Optional[StageRunner] = None,
        fan_out: Optional[FanOutExecutor] = None,
        sanitizer: Optional[ResponseSanitizer] = None,
        validator: Optional[StructuralValidator] = None,
        aggregator: Optional[ConfidenceAggregator] = None,
        assembler: Optional[ResponseAssembler] = None,
    ):
        self.collaborators = collaborators or IntelligenceCollaborators()
        self.config = config or AppConfig()
        orchestration = self.config.orchestration
        self.runner = runner or StageRunner(timeout_seconds=orchestration.stage_timeout_seconds)
        self.fan_out = fan_out or FanOutExecutor(
            max_workers=orchestration.fan_out_width,
            item_timeout_seconds=orchestration.item_timeout_seconds,
        )
        self.sanitizer = sanitizer or ResponseSanitizer()
        self.validator = validator or StructuralValidator(self.config.validation)
        self.aggregator = aggregator or ConfidenceAggregator(self.config.confidence)
        self.assembler = assembler or ResponseAssembler()

        # Graph shape does not depend on the request; check it once
        st.validate_stage_graph(self._build_stages(_Request('', '', '', OrchestrationOptions())))
        logger.debug(
            "Initialized IntelligenceOrchestrator",
            extra={"collaborators": self.collaborators.configured()},
        )

    def orchestrate(
        self,
        workspace_id: str,
        brand_name: str,
        domain: str,
        options: Any = None,
    ) -> IntelligenceResponse:
        response, _ = self.orchestrate_with_metrics(workspace_id, brand_name, domain, options)
        return response

    def orchestrate_with_metrics(
        self,
        workspace_id: str,
        brand_name: str,
        domain: str,
        options: Any = None,
    ) -> Tuple[IntelligenceResponse, OrchestrationMetrics]:
        """
        Execute the complete pipeline.

        Args:
            workspace_id: Tenant/workspace the analysis belongs to
            brand_name: Brand being analyzed
            domain: Brand's primary domain
            options: OrchestrationOptions or a dict (snake_case or camelCase keys)

        Returns:
            (response, metrics). The response is always structurally complete;
            problems are reported in response.metadata.warnings/errors.
        """
        start = time.perf_counter()
        metrics = OrchestrationMetrics()
        logger.info(
            "Starting GEO intelligence",
            extra={"workspace_id": workspace_id, "brand_name": brand_name, "domain": domain},
        )
        try:
            request = _Request(
                workspace_id=workspace_id,
                brand_name=brand_name,
                domain=domain,
                options=OrchestrationOptions.from_value(
                    options, default_max_opportunities=self.config.orchestration.max_opportunities),
                metrics=metrics,
            )
            outputs = self._run_stages(request)
            metrics.total_duration_ms = round((time.perf_counter() - start) * 1000.0, 3)
            response = self._finalize(request, outputs)
        except Exception as e:
            logger.exception("GEO intelligence pipeline failed", extra={"workspace_id": workspace_id})
            metrics.total_duration_ms = round((time.perf_counter() - start) * 1000.0, 3)
            response = self._minimal_response(workspace_id, brand_name, domain, metrics, e)

        logger.info(
            "GEO intelligence complete",
            extra={
                "workspace_id": workspace_id,
                "duration_ms": metrics.total_duration_ms,
                "successful_steps": len(metrics.successful_steps),
                "failed_steps": len(metrics.failed_steps),
                "skipped_steps": len(metrics.skipped_steps),
                "warnings": len(metrics.warnings),
            },
        )
        if metrics.warnings:
            logger.warning("GEO intelligence warnings: %s", "; ".join(metrics.warnings))
        return response, metrics

    # --- pipeline driver ---

    def _run_stages(self, request: _Request) -> Dict[str, Any]:
        metrics = request.metrics
        outputs: Dict[str, Any] = {}
        for stage in self._build_stages(request):
            if self._is_skipped(stage.key, request.options):
                metrics.skip(stage.key)
                outputs[stage.key] = []
                continue

            inputs = {dep: outputs[dep] for dep in stage.depends_on}
            result = self.runner.run(stage.key, partial(stage.compute, inputs))
            metrics.record(result)
            if result.success:
                data = result.data
                if isinstance(data, FanOutResult):
                    # Item warnings only count once the stage itself finished in time
                    for warning in data.warnings:
                        metrics.add_warning(warning)
                    data = data.results
                outputs[stage.key] = data
            else:
                outputs[stage.key] = stage.default_factory()
                metrics.add_warning(f"{stage.label} ({stage.key}) failed: {result.error_message}. Using defaults.")

            if stage.key == st.PROMPT_GENERATION and not as_list(outputs[stage.key]):
                industry = self._industry_label(outputs[st.INDUSTRY_DETECTION])
                outputs[stage.key] = st.generate_fallback_prompts(request.brand_name, industry)
                metrics.add_warning(
                    f"Prompt generation returned no prompts; using {len(outputs[stage.key])} fallback prompts."
                )
        return outputs

    @staticmethod
    def _is_skipped(key: str, options: OrchestrationOptions) -> bool:
        if key == st.OPPORTUNITIES:
            return not options.include_opportunities
        if key == st.RECOMMENDATIONS:
            return not options.include_recommendations
        return False

    def _finalize(self, request: _Request, outputs: Dict[str, Any]) -> IntelligenceResponse:
        raw = {
            'workspace_id': request.workspace_id,
            'brand_name': request.brand_name,
            'domain': request.domain,
            'industry': outputs[st.INDUSTRY_DETECTION],
            'business_summary': outputs[st.BUSINESS_SUMMARY],
            'prompts': outputs[st.PROMPT_GENERATION],
            'prompt_clusters': outputs[st.PROMPT_CLUSTERING],
            'competitors': outputs[st.COMPETITOR_DETECTION],
            'sov_analysis': outputs[st.SOV_ANALYSIS],
            'citations': outputs[st.CITATION_ANALYSIS],
            'commercial_values': outputs[st.COMMERCIAL_VALUE],
            'cross_engine_patterns': outputs[st.CROSS_ENGINE_PATTERNS],
            'competitor_analyses': outputs[st.COMPETITOR_ADVANTAGE],
            'trust_failures': outputs[st.TRUST_FAILURES],
            'fix_difficulties': outputs[st.FIX_DIFFICULTY],
            'geo_score': outputs[st.GEO_SCORE],
            'opportunities': outputs[st.OPPORTUNITIES],
            'recommendations': outputs[st.RECOMMENDATIONS],
        }
        sanitized = self.sanitizer.sanitize(raw)
        confidence = self.aggregator.aggregate(
            ConfidenceSignals.from_response(sanitized), request.metrics, self.TOTAL_STEPS)
        assembled = self.assembler.assemble(sanitized, confidence, request.metrics)
        validation = self.validator.validate(assembled)
        return self.assembler.attach_validation(assembled, validation)

    def _minimal_response(
        self,
        workspace_id: str,
        brand_name: str,
        domain: str,
        metrics: OrchestrationMetrics,
        error: Exception,
    ) -> IntelligenceResponse:
        identity = {'workspace_id': workspace_id, 'brand_name': brand_name, 'domain': domain}
        try:
            response = self.sanitizer.sanitize(identity)
        except Exception:
            logger.exception("Sanitizing minimal response failed")
            response = IntelligenceResponse(
                workspace_id=text_of(workspace_id), brand_name=text_of(brand_name), domain=text_of(domain))
        metadata = replace(
            response.metadata,
            generated_at=datetime.now().isoformat(),
            confidence=0.0,
            warnings=unique(response.metadata.warnings + metrics.warnings),
            errors=unique(response.metadata.errors + [f"Orchestration failed: {error}"]),
            failed_stages=list(metrics.failed_steps),
        )
        return replace(response, metadata=metadata)

    # --- stage graph ---

    def _build_stages(self, request: _Request) -> List[StageDefinition]:
        """Declare every stage with its dependencies; compute functions close over `request`."""
        def stage(key, label, depends_on, compute, default_factory=st.empty_list):
            return StageDefinition(
                key=key,
                label=label,
                depends_on=tuple(depends_on),
                compute=partial(compute, request),
                default_factory=default_factory,
            )

        return [
            stage(st.INDUSTRY_DETECTION, "Industry Detection", (),
                  self._detect_industry, st.default_industry_classification),
            stage(st.BUSINESS_SUMMARY, "Business Summary", (),
                  self._summarize_business, st.default_business_summary),
            stage(st.PROMPT_GENERATION, "Prompt Generation", (st.INDUSTRY_DETECTION,),
                  self._generate_prompts),
            stage(st.PROMPT_CLUSTERING, "Prompt Clustering", (st.INDUSTRY_DETECTION, st.PROMPT_GENERATION),
                  self._cluster_prompts),
            stage(st.COMPETITOR_DETECTION, "Competitor Detection", (st.INDUSTRY_DETECTION,),
                  self._detect_competitors),
            stage(st.SOV_ANALYSIS, "SOV Analysis", (st.COMPETITOR_DETECTION,),
                  self._analyze_share_of_voice),
            stage(st.CITATION_ANALYSIS, "Citation Analysis", (),
                  self._analyze_citations, st.default_citations),
            stage(st.COMMERCIAL_VALUE, "Commercial Value Scoring", (st.INDUSTRY_DETECTION, st.PROMPT_CLUSTERING),
                  self._score_commercial_value),
            stage(st.CROSS_ENGINE_PATTERNS, "Cross-Engine Pattern Recognition", (st.PROMPT_GENERATION,),
                  self._analyze_engine_patterns, st.default_cross_engine_patterns),
            stage(st.COMPETITOR_ADVANTAGE, "Competitor Advantage Analysis",
                  (st.COMPETITOR_DETECTION, st.PROMPT_GENERATION),
                  self._analyze_competitor_advantage),
            stage(st.TRUST_FAILURES, "Trust Failure Detection", (),
                  self._detect_trust_failures),
            stage(st.FIX_DIFFICULTY, "Fix Difficulty Scoring", (st.PROMPT_CLUSTERING,),
                  self._score_fix_difficulty),
            stage(st.GEO_SCORE, "GEO Score Computation", (st.INDUSTRY_DETECTION, st.COMPETITOR_DETECTION),
                  self._compute_geo_score, st.default_geo_score),
            stage(st.OPPORTUNITIES, "Visibility Opportunities Generation", (st.GEO_SCORE,),
                  self._generate_opportunities),
            stage(st.RECOMMENDATIONS, "Recommendations Generation",
                  (st.TRUST_FAILURES, st.COMPETITOR_ADVANTAGE, st.PROMPT_CLUSTERING,
                   st.FIX_DIFFICULTY, st.COMMERCIAL_VALUE, st.GEO_SCORE),
                  self._generate_recommendations),
        ]

    # --- helpers ---

    def _collaborator(self, name: str, stage_key: str):
        fn = getattr(self.collaborators, name, None)
        if fn is None:
            raise RuntimeError(f"No collaborator configured for {stage_key}")
        return fn

    @staticmethod
    def _industry_label(industry: Any) -> str:
        label = text_of(read_field(industry, 'primaryIndustry', 'primary_industry', 'primary'))
        return label or UNKNOWN_INDUSTRY

    @staticmethod
    def _prompt_texts(prompts: Any) -> List[str]:
        return [t for t in (st.prompt_text(p) for p in as_list(prompts) if p is not None) if t]

    @staticmethod
    def _competitor_names(competitors: Any) -> List[str]:
        return [n for n in (st.competitor_name(c) for c in as_list(competitors) if c is not None) if n]

    def build_brand_context(self, brand_name: str, industry: Any) -> BrandContext:
        primary = self._industry_label(industry)
        secondary = [text_of(s) for s in as_list(
            read_field(industry, 'secondaryIndustries', 'secondary_industries', 'secondary')) if text_of(s)]
        return BrandContext(
            brand_name=brand_name,
            industry=primary,
            category=primary.split('/')[0].strip() or primary,
            vertical=secondary[0] if secondary else primary,
            services=[],
            market_type=st.infer_market_type(primary),
            service_type=st.infer_service_type(primary),
        )

    # --- stage compute functions ---

    def _detect_industry(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        classify = self._collaborator('industry_classifier', st.INDUSTRY_DETECTION)
        result = classify(request.workspace_id, request.domain)
        primary = text_of(read_field(result, 'primaryIndustry', 'primary_industry', 'primary'))
        confidence = read_field(result, 'confidence')
        if not primary:
            raise ValueError("Invalid industry classification: missing primary industry")
        if not is_in_range(confidence, 0.0, 1.0):
            raise ValueError(f"Invalid industry classification: confidence {confidence} outside 0-1")
        return result

    def _summarize_business(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        summarize = self._collaborator('business_summarizer', st.BUSINESS_SUMMARY)
        return summarize(request.workspace_id, request.domain, request.brand_name)

    def _generate_prompts(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        generate = self._collaborator('prompt_generator', st.PROMPT_GENERATION)
        context = self.build_brand_context(request.brand_name, inputs[st.INDUSTRY_DETECTION])
        return generate(request.workspace_id, context)

    def _cluster_prompts(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        cluster = self._collaborator('prompt_clusterer', st.PROMPT_CLUSTERING)
        return cluster(
            request.workspace_id,
            request.brand_name,
            self._prompt_texts(inputs[st.PROMPT_GENERATION]),
            self._industry_label(inputs[st.INDUSTRY_DETECTION]),
        )

    def _detect_competitors(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        detect = self._collaborator('competitor_detector', st.COMPETITOR_DETECTION)
        return detect(
            request.workspace_id,
            request.domain,
            request.brand_name,
            self._industry_label(inputs[st.INDUSTRY_DETECTION]),
        )

    def _analyze_share_of_voice(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        sov = self._collaborator('share_of_voice', st.SOV_ANALYSIS)
        entities = unique([request.brand_name] + self._competitor_names(inputs[st.COMPETITOR_DETECTION]))
        entities = [e for e in entities if e]
        if not entities:
            return []
        return sov(request.workspace_id, entities)

    def _analyze_citations(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        citations = self._collaborator('citation_service', st.CITATION_ANALYSIS)
        return citations(request.workspace_id, request.domain, self.config.orchestration.citation_limit)

    def _score_commercial_value(self, request: _Request, inputs: Dict[str, Any]) -> FanOutResult:
        clusters = [c for c in as_list(inputs[st.PROMPT_CLUSTERING]) if c is not None]
        if not clusters:
            return FanOutResult()
        score = self._collaborator('commercial_value_scorer', st.COMMERCIAL_VALUE)
        industry = self._industry_label(inputs[st.INDUSTRY_DETECTION])

        def score_cluster(cluster):
            return score(request.workspace_id, request.brand_name, st.cluster_prompts(cluster), industry)

        return self.fan_out.run_each(
            clusters, score_cluster, st.default_commercial_value, describe=lambda c: f"cluster {st.cluster_title(c)}")

    def _analyze_engine_patterns(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        analyze = self._collaborator('engine_pattern_analyzer', st.CROSS_ENGINE_PATTERNS)
        return analyze(request.workspace_id, request.brand_name, self._prompt_texts(inputs[st.PROMPT_GENERATION]))

    def _analyze_competitor_advantage(self, request: _Request, inputs: Dict[str, Any]) -> FanOutResult:
        limit = self.config.orchestration.competitor_analysis_limit
        competitors = [c for c in as_list(inputs[st.COMPETITOR_DETECTION]) if st.competitor_name(c)][:limit]
        if not competitors:
            return FanOutResult()
        analyze = self._collaborator('competitor_advantage_analyzer', st.COMPETITOR_ADVANTAGE)
        prompt_texts = self._prompt_texts(inputs[st.PROMPT_GENERATION])

        def analyze_competitor(competitor):
            return analyze(request.workspace_id, request.brand_name, st.competitor_name(competitor), prompt_texts)

        return self.fan_out.run_each(
            competitors, analyze_competitor, st.default_competitor_analysis,
            describe=lambda c: f"competitor {st.competitor_name(c)}")

    def _detect_trust_failures(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        detect = self._collaborator('trust_failure_detector', st.TRUST_FAILURES)
        return detect(request.workspace_id, request.brand_name)

    def _score_fix_difficulty(self, request: _Request, inputs: Dict[str, Any]) -> FanOutResult:
        clusters = [c for c in as_list(inputs[st.PROMPT_CLUSTERING]) if c is not None]
        if not clusters:
            return FanOutResult()
        score = self._collaborator('fix_difficulty_scorer', st.FIX_DIFFICULTY)

        def score_cluster(cluster):
            return score(request.workspace_id, request.brand_name, st.cluster_title(cluster),
                         st.cluster_prompts(cluster))

        return self.fan_out.run_each(
            clusters, score_cluster, st.default_fix_difficulty, describe=lambda c: f"cluster {st.cluster_title(c)}")

    def _compute_geo_score(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        calculate = self._collaborator('score_calculator', st.GEO_SCORE)
        return calculate(
            request.workspace_id,
            request.domain,
            request.brand_name,
            self._competitor_names(inputs[st.COMPETITOR_DETECTION]),
            self._industry_label(inputs[st.INDUSTRY_DETECTION]),
        )

    def _generate_opportunities(self, request: _Request, inputs: Dict[str, Any]) -> List[Any]:
        generate = self._collaborator('opportunity_generator', st.OPPORTUNITIES)
        max_opportunities = request.options.max_opportunities
        opportunities = generate(request.workspace_id, request.brand_name, request.domain, max_opportunities)
        return as_list(opportunities)[:max_opportunities]

    def _generate_recommendations(self, request: _Request, inputs: Dict[str, Any]) -> Any:
        generate = self._collaborator('recommendation_generator', st.RECOMMENDATIONS)
        context = {
            'trust_failures': inputs[st.TRUST_FAILURES],
            'competitor_analyses': inputs[st.COMPETITOR_ADVANTAGE],
            'prompt_clusters': inputs[st.PROMPT_CLUSTERING],
            'fix_difficulties': inputs[st.FIX_DIFFICULTY],
            'commercial_values': inputs[st.COMMERCIAL_VALUE],
            'geo_score': inputs[st.GEO_SCORE],
        }
        return generate(request.workspace_id, request.brand_name, context)
