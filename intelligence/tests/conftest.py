"""Shared test fixtures for GEO intelligence tests."""
import pytest
from unittest.mock import Mock

from intelligence.core.config import AppConfig
from intelligence.orchestration.collaborators import IntelligenceCollaborators
from intelligence.orchestration.fan_out import FanOutExecutor
from intelligence.orchestration.intelligence_orchestrator import IntelligenceOrchestrator
from intelligence.orchestration.stage_runner import StageRunner


WORKSPACE_ID = 'ws-123'
BRAND_NAME = 'Acme Travel'
DOMAIN = 'acmetravel.com'

COMPETITOR_NAMES = ['Globetrek', 'WanderWay', 'RoamRight', 'TripNest', 'AirHaven', 'VoyaPort']


@pytest.fixture(autouse=True)
def clean_geo_env(monkeypatch):
    """Keep GEO_* overrides from the developer's shell out of the tests."""
    for name in (
        'GEO_FAN_OUT_WIDTH', 'GEO_STAGE_TIMEOUT_SECONDS', 'GEO_ITEM_TIMEOUT_SECONDS',
        'GEO_COMPETITOR_ANALYSIS_LIMIT', 'GEO_MAX_OPPORTUNITIES', 'GEO_CITATION_LIMIT',
        'GEO_SCORE_TOLERANCE', 'GEO_MIN_PROMPTS', 'GEO_MIN_COMPETITORS', 'GEO_MIN_OPPORTUNITIES',
        'GEO_MIN_RECOMMENDATIONS', 'GEO_MIN_CONFIDENCE', 'GEO_MIN_ACTION_STEPS',
        'GEO_CONFIDENCE_BASE', 'GEO_CONFIDENCE_BONUS', 'GEO_TRUST_FAILURE_BONUS',
        'GEO_HIGH_CONFIDENCE_THRESHOLD', 'GEO_FAILURE_PENALTY_WEIGHT', 'GEO_CACHE_TTL_SECONDS',
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_industry():
    return {'primaryIndustry': 'Travel / Online Booking', 'secondaryIndustries': ['Hotels'], 'confidence': 0.85}


@pytest.fixture
def sample_prompts():
    return [
        {'text': 'best travel booking sites', 'intent': 'BEST', 'commercialIntent': 0.8, 'industryRelevance': 0.9},
        {'text': 'Acme Travel vs Globetrek', 'intent': 'COMPARISON', 'commercialIntent': 0.7},
        {'text': 'cheap all-inclusive trips', 'intent': 'PRICING', 'commercialIntent': 0.9},
        {'text': 'is Acme Travel legit', 'intent': 'TRUST', 'commercialIntent': 0.5},
        {'text': 'how to plan a multi-city trip', 'intent': 'HOW_TO', 'commercialIntent': 0.3},
    ]


@pytest.fixture
def sample_clusters():
    return [
        {'title': 'Deal seekers', 'type': 'PRICING', 'prompts': ['cheap all-inclusive trips'], 'value': 72},
        {'title': 'Trust checks', 'type': 'TRUST', 'prompts': ['is Acme Travel legit'], 'value': 48},
        {'title': 'Planners', 'type': 'HOW_TO', 'prompts': ['how to plan a multi-city trip'], 'value': 30},
    ]


@pytest.fixture
def sample_geo_score():
    """Components whose weighted sum is 61.75."""
    return {
        'total': 65,
        'breakdown': {
            'aiVisibility': {'score': 70, 'weight': 0.35},
            'eeat': {'score': 60, 'weight': 0.25},
            'citations': {'score': 50, 'weight': 0.15},
            'competitorComparison': {'score': 55, 'weight': 0.15},
            'schemaTechnical': {'score': 65, 'weight': 0.10},
        },
    }


@pytest.fixture
def sample_opportunities():
    return [
        {
            'title': f'Opportunity {i}',
            'aiVisibility': {'chatgpt': 20, 'claude': 15, 'gemini': 5, 'perplexity': 35},
            'opportunityImpact': 70,
            'difficulty': 40,
            'value': 60,
            'actionSteps': ['Publish comparison page', 'Add FAQ schema', 'Pitch travel press'],
            'confidence': 0.7,
            'geoScoreImpact': {'min': 2, 'max': 6},
        }
        for i in range(6)
    ]


@pytest.fixture
def sample_recommendations():
    return [
        {
            'id': f'rec-{i}',
            'title': f'Recommendation {i}',
            'description': 'Do the thing',
            'priority': 'high',
            'difficulty': 'easy',
            'steps': ['One', 'Two', 'Three'],
            'confidence': 0.8,
        }
        for i in range(3)
    ]


@pytest.fixture
def collaborators(sample_industry, sample_prompts, sample_clusters, sample_geo_score,
                  sample_opportunities, sample_recommendations):
    """Every collaborator configured with deterministic Mock output."""
    return IntelligenceCollaborators(
        industry_classifier=Mock(return_value=sample_industry),
        business_summarizer=Mock(return_value={'summary': 'Online travel agency', 'confidence': 0.8}),
        prompt_generator=Mock(return_value=sample_prompts),
        prompt_clusterer=Mock(return_value=sample_clusters),
        competitor_detector=Mock(return_value=[{'brandName': n, 'confidence': 0.7} for n in COMPETITOR_NAMES]),
        share_of_voice=Mock(return_value=[{'entity': BRAND_NAME, 'shareOfVoice': 22.5, 'mentions': 9}]),
        citation_service=Mock(return_value={'citations': [{'url': 'https://acmetravel.com'}], 'total': 1,
                                            'confidence': 0.6}),
        commercial_value_scorer=Mock(return_value={'visibilityValueIndex': 40, 'confidence': 0.6}),
        engine_pattern_analyzer=Mock(return_value={'enginesRecognizing': ['perplexity'],
                                                   'engineConfidence': {'chatgpt': 0.6, 'claude': 0.6,
                                                                        'gemini': 0.4, 'perplexity': 0.7}}),
        competitor_advantage_analyzer=Mock(
            side_effect=lambda ws, brand, name, prompts: {'competitor': name, 'structuralAdvantageScore': 55,
                                                          'confidence': 0.6}),
        trust_failure_detector=Mock(return_value=[{'category': 'reviews', 'description': 'Few reviews',
                                                   'severity': 40, 'confidence': 0.7}]),
        fix_difficulty_scorer=Mock(
            side_effect=lambda ws, brand, title, prompts: {'clusterTitle': title, 'difficultyScore': 'medium',
                                                           'confidence': 0.6}),
        score_calculator=Mock(return_value=sample_geo_score),
        opportunity_generator=Mock(return_value=sample_opportunities),
        recommendation_generator=Mock(return_value=sample_recommendations),
    )


@pytest.fixture
def app_config():
    return AppConfig()


@pytest.fixture
def make_orchestrator(app_config):
    """Factory for orchestrators that run stages inline (no soft timeouts)."""
    def _make(collaborators, **kwargs):
        kwargs.setdefault('runner', StageRunner())
        kwargs.setdefault('fan_out', FanOutExecutor(max_workers=3))
        return IntelligenceOrchestrator(collaborators, config=app_config, **kwargs)
    return _make
