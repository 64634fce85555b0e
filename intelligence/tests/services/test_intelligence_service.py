"""Tests for IntelligenceService caching and status mapping."""
import pytest

from intelligence.core.config import CacheConfig
from intelligence.services.intelligence_service import HTTP_OK, HTTP_PARTIAL_CONTENT, IntelligenceService

WORKSPACE_ID, BRAND_NAME, DOMAIN = 'ws-123', 'Acme Travel', 'acmetravel.com'


class FakeClock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def orchestrator(make_orchestrator, collaborators):
    return make_orchestrator(collaborators)


@pytest.fixture
def service(orchestrator, clock):
    return IntelligenceService(orchestrator, cache_config=CacheConfig(ttl_seconds=300), clock=clock)


def _runs(collaborators):
    return collaborators.industry_classifier.call_count


class TestGetIntelligence:

    def test_fresh_report(self, service, collaborators):
        report = service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        assert report.cached is False
        assert report.status_code == HTTP_OK
        assert report.response.brand_name == BRAND_NAME
        assert report.data_quality.meets_threshold is True
        assert _runs(collaborators) == 1

    def test_cache_hit(self, service, collaborators):
        first = service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        second = service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        assert second.cached is True
        assert second.response is first.response
        assert second.created_at == first.created_at
        assert _runs(collaborators) == 1

    def test_refresh_bypasses_and_replaces_cache(self, service, collaborators):
        first = service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        refreshed = service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN, refresh=True)
        assert refreshed.cached is False
        assert refreshed.response is not first.response
        again = service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        assert again.response is refreshed.response
        assert _runs(collaborators) == 2

    def test_ttl_expiry(self, service, collaborators, clock):
        service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        clock.advance(299)
        assert service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN).cached is True
        clock.advance(1)
        assert service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN).cached is False
        assert _runs(collaborators) == 2

    def test_options_are_part_of_cache_key(self, service, collaborators):
        service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        report = service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN, options={'maxOpportunities': 2})
        assert report.cached is False
        assert _runs(collaborators) == 2
        same = service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN, options={'max_opportunities': 2})
        assert same.cached is True

    def test_zero_ttl_disables_cache(self, orchestrator, collaborators, clock):
        service = IntelligenceService(orchestrator, cache_config=CacheConfig(ttl_seconds=0), clock=clock)
        service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        assert service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN).cached is False
        assert _runs(collaborators) == 2

    def test_errors_map_to_partial_content(self, service):
        report = service.get_intelligence(WORKSPACE_ID, '', DOMAIN)
        assert report.status_code == HTTP_PARTIAL_CONTENT
        assert 'Missing brand_name' in report.response.metadata.errors

    def test_data_quality_reported(self, service, collaborators):
        collaborators.opportunity_generator.return_value = []
        report = service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        assert report.status_code == HTTP_OK
        assert report.data_quality.meets_threshold is False
        assert 'No visibility opportunities generated' in report.data_quality.issues

    def test_empty_workspace_rejected(self, service, collaborators):
        with pytest.raises(ValueError, match='workspace_id is required'):
            service.get_intelligence('', BRAND_NAME, DOMAIN)
        assert _runs(collaborators) == 0


class TestCacheManagement:

    def test_invalidate_workspace(self, service, collaborators):
        service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN, options={'includeRecommendations': False})
        service.get_intelligence('ws-other', BRAND_NAME, DOMAIN)

        assert service.invalidate(WORKSPACE_ID) == 2
        assert service.invalidate(WORKSPACE_ID) == 0
        assert service.get_intelligence('ws-other', BRAND_NAME, DOMAIN).cached is True
        assert service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN).cached is False

    def test_clear_cache(self, service):
        service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN)
        service.clear_cache()
        assert service.get_intelligence(WORKSPACE_ID, BRAND_NAME, DOMAIN).cached is False

    def test_validator_defaults_to_orchestrators(self, orchestrator):
        assert IntelligenceService(orchestrator).validator is orchestrator.validator
