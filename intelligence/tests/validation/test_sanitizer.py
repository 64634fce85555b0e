"""Tests for ResponseSanitizer normalization rules."""
import math
from datetime import datetime

import pytest

from intelligence.core.types import CompositeScore, IntelligenceResponse, Opportunity, Recommendation
from intelligence.validation.sanitizer import ResponseSanitizer, recommendation_id


@pytest.fixture
def sanitizer():
    return ResponseSanitizer()


@pytest.fixture
def messy_raw():
    """Raw output with out-of-range, missing and malformed values."""
    return {
        'workspaceId': 'ws-1',
        'brandName': 'Acme',
        'domain': 'acme.com',
        'industry': {'primaryIndustry': 'SaaS', 'confidence': 1.7},
        'businessSummary': {'summary': '', 'confidence': float('nan')},
        'prompts': ['plain text prompt', None, {'text': 'best crm', 'commercialIntent': 4, 'industryRelevance': -1}],
        'promptClusters': [{'title': 'CRM', 'difficulty': 'HARD', 'value': 250, 'prompts': [{'text': 'best crm'}]}],
        'competitors': ['Rival', {'brandName': 'Other', 'confidence': 'high'}],
        'sovAnalysis': 'not a list',
        'citations': {'citations': [None, {'url': 'x'}], 'total': -4, 'confidence': float('inf')},
        'crossEnginePatterns': {'engineConfidence': {'chatgpt': 2, 'gemini': -1}},
        'trustFailures': [{'severity': float('inf')}],
        'fixDifficulties': [{'clusterTitle': 'CRM', 'difficultyScore': 'impossible'}],
        'geoScore': {'total': float('-inf'), 'breakdown': {'aiVisibility': {'score': 120}, 'custom': 40}},
        'opportunities': [{
            'title': '',
            'aiVisibility': {'chatgpt': 150, 'claude': 'n/a'},
            'difficulty': 'easy',
            'actionSteps': ['Only step'],
            'geoScoreImpact': {'min': -3, 'max': 5},
        }],
        'recommendations': [{'title': 'Fix schema', 'priority': 'URGENT', 'difficulty': 'Hard', 'steps': []}],
        'metadata': {'generatedAt': datetime(2026, 1, 2, 3, 4, 5), 'warnings': ['upstream note']},
    }


class TestClamping:

    def test_confidences_clamped_or_defaulted(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        assert response.industry.confidence == 1.0
        assert response.business_summary.confidence == 0.5
        assert response.citations.confidence == 1.0
        assert response.competitors[1].confidence == 0.5
        assert response.cross_engine_patterns.engine_confidence == {
            'chatgpt': 1.0, 'claude': 0.5, 'gemini': 0.0, 'perplexity': 0.5}

    def test_percentages_clamped(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        assert response.prompt_clusters[0].value == 100.0
        assert response.trust_failures[0].severity == 100.0
        assert response.geo_score.overall == 0.0
        assert response.opportunities[0].ai_visibility.chatgpt == 100.0
        assert response.opportunities[0].ai_visibility.claude == 0.0

    def test_probabilities_on_prompts(self, sanitizer, messy_raw):
        prompt = sanitizer.sanitize(messy_raw).prompts[1]
        assert prompt.commercial_intent == 1.0
        assert prompt.industry_relevance == 0.0

    def test_non_negative_and_counts(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        assert response.citations.total == 0
        assert response.opportunities[0].geo_score_impact.min == 0.0
        assert response.opportunities[0].geo_score_impact.max == 5.0

    def test_difficulty_labels(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        assert response.prompt_clusters[0].difficulty == 90.0
        assert response.opportunities[0].difficulty == 30.0
        assert response.fix_difficulties[0].difficulty_score == 50.0

    def test_every_number_is_finite(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        assert math.isfinite(response.geo_score.overall)
        assert math.isfinite(response.trust_failures[0].severity)
        assert math.isfinite(response.citations.confidence)

    def test_huge_integers_clamped_to_bounds(self, sanitizer):
        response = sanitizer.sanitize({
            'geo_score': {'total': 10 ** 400},
            'industry': {'primary': 'Travel', 'confidence': -10 ** 400},
            'citations': {'total': 10 ** 400},
        })
        assert response.geo_score.overall == 100.0
        assert response.industry.confidence == 0.0
        assert response.citations.total == 0


class TestShapes:

    def test_arrays_normalized(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        assert response.sov_analysis == []
        assert [p.text for p in response.prompts] == ['plain text prompt', 'best crm']
        assert response.citations.citations == [{'url': 'x'}]
        assert response.prompt_clusters[0].prompts == ['best crm']

    def test_string_competitor(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        assert [c.brand_name for c in response.competitors] == ['Rival', 'Other']
        assert response.competitors[0].type == 'direct'

    def test_placeholders(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        assert response.business_summary.summary == 'Business information unavailable'
        assert response.opportunities[0].title == 'Untitled Opportunity'
        assert response.opportunities[0].why_you_are_losing == 'Analysis unavailable'
        assert response.recommendations[0].reasoning == 'Reasoning unavailable'
        assert response.recommendations[0].expected_impact.description == 'Impact analysis unavailable'

    def test_enums_normalized(self, sanitizer, messy_raw):
        rec = sanitizer.sanitize(messy_raw).recommendations[0]
        assert rec.priority == 'medium'
        assert rec.difficulty == 'hard'

    def test_breakdown_weights(self, sanitizer, messy_raw):
        breakdown = sanitizer.sanitize(messy_raw).geo_score.breakdown
        assert breakdown['aiVisibility'].score == 100.0
        assert breakdown['aiVisibility'].weight == 0.35
        assert breakdown['custom'].score == 40.0
        assert breakdown['custom'].weight == 0.0

    def test_missing_sections_get_defaults(self, sanitizer):
        response = sanitizer.sanitize({'workspace_id': 'w', 'brand_name': 'b', 'domain': 'd'})
        assert response.industry.primary == 'Unknown'
        assert response.geo_score == CompositeScore()
        assert response.opportunities == []
        assert response.metadata.generated_at is None

    def test_identity_not_placeholdered(self, sanitizer):
        response = sanitizer.sanitize({})
        assert (response.workspace_id, response.brand_name, response.domain) == ('', '', '')

    def test_timestamp_serialized(self, sanitizer, messy_raw):
        assert sanitizer.sanitize(messy_raw).metadata.generated_at == '2026-01-02T03:04:05'


class TestPadding:

    def test_action_steps_padded_with_warning(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        steps = response.opportunities[0].action_steps
        assert len(steps) == 3
        assert steps[0] == 'Only step'
        assert steps[1] == 'Review opportunity details'
        assert any('action_steps had 1 of 3' in w for w in response.metadata.warnings)

    def test_recommendation_steps_padded(self, sanitizer, messy_raw):
        response = sanitizer.sanitize(messy_raw)
        assert response.recommendations[0].steps == [
            'Review recommendation details', 'Plan implementation', 'Execute and monitor']
        assert response.metadata.warnings[0] == 'upstream note'

    def test_padding_never_duplicates_placeholder_already_present(self, sanitizer):
        raw = {'opportunities': [{'title': 'x', 'actionSteps': ['Review opportunity details']}]}
        steps = sanitizer.sanitize(raw).opportunities[0].action_steps
        assert len(steps) == 3
        assert len(set(steps)) == 3


class TestRecommendationIds:

    def test_missing_id_is_deterministic(self, sanitizer, messy_raw):
        first = sanitizer.sanitize(messy_raw).recommendations[0].id
        second = sanitizer.sanitize(messy_raw).recommendations[0].id
        assert first == second == recommendation_id(0, 'Fix schema')
        assert first.startswith('rec-')

    def test_existing_id_kept(self, sanitizer):
        rec = sanitizer.sanitize({'recommendations': [{'id': 'r-9', 'title': 't'}]}).recommendations[0]
        assert rec.id == 'r-9'


class TestIdempotence:

    def test_sanitize_twice_is_noop(self, sanitizer, messy_raw):
        once = sanitizer.sanitize(messy_raw)
        twice = sanitizer.sanitize(once)
        assert twice == once

    def test_sanitized_dataclass_input(self, sanitizer):
        response = IntelligenceResponse(
            workspace_id='w', brand_name='b', domain='d',
            opportunities=[Opportunity(title='o', action_steps=['a', 'b', 'c'])],
            recommendations=[Recommendation(id='r', title='t', steps=['a', 'b', 'c'])],
        )
        assert sanitizer.sanitize(response) == response
