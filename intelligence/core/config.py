import os
import logging
from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional, Dict, Any, Callable

load_dotenv()


class EnvConfig:
    """Small helper for reading and casting environment variables.

    Usage: EnvConfig.get('GEO_FAN_OUT_WIDTH', cast=int, aliases=['FAN_OUT_WIDTH'])
    """

    @staticmethod
    def get(name: str, default: Any = None, cast: Optional[Callable] = None, aliases: Optional[list] = None):
        aliases = aliases or []
        for key in (name, *aliases):
            val = os.getenv(key)
            if val is not None:
                if cast is not None:
                    try:
                        return cast(val)
                    except Exception as exc:
                        raise ValueError(f"Invalid value for {key}: {exc}")
                return val
        return default


# Debug flag
DEBUG = EnvConfig.get('DEBUG', default='False', cast=lambda v: v.lower() == 'true')


def log_level(debug: Optional[bool] = None) -> int:
    """Root log level for entry-point scripts: DEBUG when the DEBUG flag is on."""
    if debug is None:
        debug = DEBUG
    return logging.DEBUG if debug else logging.INFO


SERVICE_VERSION = "2.0.0"


@dataclass
class BaseConfig:
    """Mixin-like helper for dataclasses that load from envs and validate."""

    @classmethod
    def _env(cls, name: str, default: Any = None, cast: Optional[Callable] = None, aliases: Optional[list] = None):
        return EnvConfig.get(name, default=default, cast=cast, aliases=aliases)

    def validate(self, required: bool = True):
        """Default no-op; override in subclasses with required flag."""
        return None


@dataclass
class OrchestrationConfig(BaseConfig):
    """Pipeline resource limits.

    fan_out_width bounds concurrent per-item calls (per competitor, per prompt
    cluster); items beyond the width queue. Timeouts are soft: the pipeline
    stops waiting, the worker thread is left to finish.
    """
    fan_out_width: int = 5
    stage_timeout_seconds: Optional[float] = 120.0
    item_timeout_seconds: Optional[float] = 60.0
    competitor_analysis_limit: int = 5
    max_opportunities: int = 50
    citation_limit: int = 50

    def __post_init__(self):
        width = self._env('GEO_FAN_OUT_WIDTH', default=None, cast=int)
        if width is not None:
            self.fan_out_width = width
        stage_timeout = self._env('GEO_STAGE_TIMEOUT_SECONDS', default=None, cast=float)
        if stage_timeout is not None:
            self.stage_timeout_seconds = stage_timeout
        item_timeout = self._env('GEO_ITEM_TIMEOUT_SECONDS', default=None, cast=float)
        if item_timeout is not None:
            self.item_timeout_seconds = item_timeout
        limit = self._env('GEO_COMPETITOR_ANALYSIS_LIMIT', default=None, cast=int)
        if limit is not None:
            self.competitor_analysis_limit = limit
        max_opps = self._env('GEO_MAX_OPPORTUNITIES', default=None, cast=int)
        if max_opps is not None:
            self.max_opportunities = max_opps
        citations = self._env('GEO_CITATION_LIMIT', default=None, cast=int)
        if citations is not None:
            self.citation_limit = citations

    def validate(self, required: bool = True) -> None:
        if self.fan_out_width < 1:
            raise ValueError('fan_out_width must be >= 1')
        if self.stage_timeout_seconds is not None and self.stage_timeout_seconds <= 0:
            raise ValueError('stage_timeout_seconds must be > 0')
        if self.item_timeout_seconds is not None and self.item_timeout_seconds <= 0:
            raise ValueError('item_timeout_seconds must be > 0')
        if self.competitor_analysis_limit < 0:
            raise ValueError('competitor_analysis_limit must be >= 0')
        if self.max_opportunities < 0:
            raise ValueError('max_opportunities must be >= 0')
        if self.citation_limit < 1:
            raise ValueError('citation_limit must be >= 1')


@dataclass
class ValidationConfig(BaseConfig):
    """Structural-validation tolerances and data-quality thresholds.

    These are heuristics, not derived from a model; tune per deployment.
    """
    score_tolerance: float = 10.0
    min_prompts: int = 5
    min_competitors: int = 3
    min_opportunities: int = 5
    min_recommendations: int = 3
    min_confidence: float = 0.5
    min_action_steps: int = 3

    def __post_init__(self):
        tolerance = self._env('GEO_SCORE_TOLERANCE', default=None, cast=float)
        if tolerance is not None:
            self.score_tolerance = tolerance
        for attr, env_name, cast in (
            ('min_prompts', 'GEO_MIN_PROMPTS', int),
            ('min_competitors', 'GEO_MIN_COMPETITORS', int),
            ('min_opportunities', 'GEO_MIN_OPPORTUNITIES', int),
            ('min_recommendations', 'GEO_MIN_RECOMMENDATIONS', int),
            ('min_confidence', 'GEO_MIN_CONFIDENCE', float),
            ('min_action_steps', 'GEO_MIN_ACTION_STEPS', int),
        ):
            value = self._env(env_name, default=None, cast=cast)
            if value is not None:
                setattr(self, attr, value)

    def validate(self, required: bool = True) -> None:
        if self.score_tolerance < 0:
            raise ValueError('score_tolerance must be >= 0')
        if not 0 <= self.min_confidence <= 1:
            raise ValueError('min_confidence must be between 0 and 1')
        if min(self.min_prompts, self.min_competitors, self.min_opportunities,
               self.min_recommendations, self.min_action_steps) < 0:
            raise ValueError('minimum counts must be >= 0')


@dataclass
class ConfidenceConfig(BaseConfig):
    base: float = 0.5
    bonus: float = 0.1
    trust_failure_bonus: float = 0.05
    high_confidence_threshold: float = 0.7
    failure_penalty_weight: float = 0.2

    def __post_init__(self):
        for attr, env_name in (
            ('base', 'GEO_CONFIDENCE_BASE'),
            ('bonus', 'GEO_CONFIDENCE_BONUS'),
            ('trust_failure_bonus', 'GEO_TRUST_FAILURE_BONUS'),
            ('high_confidence_threshold', 'GEO_HIGH_CONFIDENCE_THRESHOLD'),
            ('failure_penalty_weight', 'GEO_FAILURE_PENALTY_WEIGHT'),
        ):
            value = self._env(env_name, default=None, cast=float)
            if value is not None:
                setattr(self, attr, value)

    def validate(self, required: bool = True) -> None:
        if not 0 <= self.base <= 1:
            raise ValueError('base must be between 0 and 1')
        if not 0 <= self.high_confidence_threshold <= 1:
            raise ValueError('high_confidence_threshold must be between 0 and 1')
        if self.failure_penalty_weight < 0:
            raise ValueError('failure_penalty_weight must be >= 0')


@dataclass
class CacheConfig(BaseConfig):
    ttl_seconds: float = 300.0

    def __post_init__(self):
        ttl = self._env('GEO_CACHE_TTL_SECONDS', default=None, cast=float)
        if ttl is not None:
            self.ttl_seconds = ttl

    def validate(self, required: bool = True) -> None:
        if self.ttl_seconds < 0:
            raise ValueError('ttl_seconds must be >= 0')


@dataclass
class ClaudeConfig(BaseConfig):
    api_key: Optional[str] = None
    model: str = "claude-3-haiku-20240307"
    max_tokens: int = 3000
    temperature: float = 0.0

    def __post_init__(self):
        self.api_key = self.api_key or self._env('ANTHROPIC_API_KEY', aliases=['CLAUDE_API_KEY'])
        self.model = self._env('CLAUDE_MODEL', default=self.model)
        tokens = self._env('CLAUDE_MAX_TOKENS', default=None, cast=int)
        if tokens is not None:
            self.max_tokens = tokens
        temp = self._env('CLAUDE_TEMPERATURE', default=None, cast=float)
        if temp is not None:
            self.temperature = temp

    def validate(self, required: bool = True) -> None:
        if required and not self.api_key:
            raise ValueError('ANTHROPIC_API_KEY not set. Set via environment or ClaudeConfig.api_key')
        if self.max_tokens < 100:
            raise ValueError('max_tokens must be >= 100')
        if not 0 <= self.temperature <= 2:
            raise ValueError('temperature must be between 0 and 2')


class AppConfig:
    """Central application configuration container.

    Access sub-configs as attributes (e.g., `AppConfig.orchestration`).
    Use `AppConfig.from_env()` for a validated instance reflecting the
    current environment.
    """

    orchestration: OrchestrationConfig = OrchestrationConfig()
    validation: ValidationConfig = ValidationConfig()
    confidence: ConfidenceConfig = ConfidenceConfig()
    cache: CacheConfig = CacheConfig()
    claude: ClaudeConfig = ClaudeConfig()

    def __init__(self):
        # Fresh instances so a config reflects the environment at construction time
        self.orchestration = OrchestrationConfig()
        self.validation = ValidationConfig()
        self.confidence = ConfidenceConfig()
        self.cache = CacheConfig()
        self.claude = ClaudeConfig()

    def validate_all(self, strict: bool = False) -> None:
        self.orchestration.validate()
        self.validation.validate()
        self.confidence.validate()
        self.cache.validate()
        self.claude.validate(required=strict)

    @staticmethod
    def check_availability() -> Dict[str, Dict[str, Any]]:
        """Return availability map for each config.

        For each named sub-config return a dict with keys:
        - available: bool
        - reason: Optional[str] explaining failure when available is False
        """
        results: Dict[str, Dict[str, Any]] = {}
        configs = {
            'orchestration': OrchestrationConfig(),
            'validation': ValidationConfig(),
            'confidence': ConfidenceConfig(),
            'cache': CacheConfig(),
            'claude': ClaudeConfig(),
        }
        for name, cfg in configs.items():
            try:
                cfg.validate(required=True)
                results[name] = {'available': True, 'reason': None}
            except Exception as e:
                results[name] = {'available': False, 'reason': str(e)}
        return results

    @staticmethod
    def from_env(strict: bool = False) -> 'AppConfig':
        config = AppConfig()
        config.validate_all(strict=strict)
        return config
