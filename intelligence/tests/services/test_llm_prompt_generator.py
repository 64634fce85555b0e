"""Tests for LLMPromptGenerator."""
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from intelligence.core.config import AppConfig
from intelligence.core.types import BrandContext
from intelligence.services.llm_prompt_generator import LLMPromptGenerator


def _tool_response(payload, name='prompt_generation_output'):
    block = SimpleNamespace(type='tool_use', name=name, input=payload)
    return SimpleNamespace(content=[block])


@pytest.fixture
def brand_context():
    return BrandContext(
        brand_name='Acme Travel',
        industry='Travel',
        category='Online Booking',
        vertical='Hotels',
        services=['flights', 'hotels'],
    )


@pytest.fixture
def client():
    client = Mock()
    client.messages.create.return_value = _tool_response({'prompts': [
        {'text': 'best travel booking sites', 'intent': 'best', 'commercial_intent': 0.9,
         'industry_relevance': 0.8},
        {'text': 'Best Travel Booking Sites', 'intent': 'BEST', 'commercial_intent': 0.9},
        {'text': 'is acme travel legit', 'intent': 'TRUST', 'commercial_intent': 1.4},
        {'text': '', 'intent': 'PRICING'},
        {'text': 'plan a honeymoon', 'intent': 'INSPIRATION', 'industry_relevance': 'high'},
        'not a dict',
    ]})
    return client


class TestLLMPromptGenerator:

    def test_parses_and_deduplicates(self, client, brand_context):
        generator = LLMPromptGenerator(client=client)
        prompts = generator('ws-1', brand_context)
        assert prompts == [
            {'text': 'best travel booking sites', 'intent': 'BEST', 'commercialIntent': 0.9,
             'industryRelevance': 0.8},
            {'text': 'is acme travel legit', 'intent': 'TRUST', 'commercialIntent': 1.0,
             'industryRelevance': 0.5},
            {'text': 'plan a honeymoon', 'intent': 'UNKNOWN', 'commercialIntent': 0.0,
             'industryRelevance': 0.5},
        ]

    def test_request_uses_forced_tool_choice(self, client, brand_context):
        LLMPromptGenerator(client=client, max_prompts=7).generate('ws-1', brand_context)
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs['tool_choice'] == {'type': 'tool', 'name': 'prompt_generation_output'}
        assert kwargs['tools'][0]['name'] == 'prompt_generation_output'
        assert kwargs['max_tokens'] == LLMPromptGenerator.DEFAULT_MAX_TOKENS
        assert kwargs['temperature'] == LLMPromptGenerator.DEFAULT_TEMPERATURE
        assert kwargs['model'] == AppConfig.claude.model

        content = kwargs['messages'][0]['content']
        assert 'Acme Travel' in content
        assert 'flights, hotels' in content
        assert 'Write 7 distinct questions' in content

    def test_truncates_to_max_prompts(self, client, brand_context):
        prompts = LLMPromptGenerator(client=client, max_prompts=2).generate('ws-1', brand_context)
        assert [p['text'] for p in prompts] == ['best travel booking sites', 'is acme travel legit']

    def test_records_last_exchange(self, client, brand_context):
        generator = LLMPromptGenerator(client=client)
        generator.generate('ws-1', brand_context)
        assert 'Acme Travel' in generator.last_llm_prompt
        assert generator.last_llm_response

    def test_missing_prompts_key(self, client, brand_context):
        client.messages.create.return_value = _tool_response({})
        assert LLMPromptGenerator(client=client).generate('ws-1', brand_context) == []

    def test_non_tool_response_raises(self, client, brand_context):
        client.messages.create.return_value = SimpleNamespace(content=[SimpleNamespace(type='text', text='hi')])
        with pytest.raises(ValueError, match='Expected tool_use response'):
            LLMPromptGenerator(client=client).generate('ws-1', brand_context)

    def test_api_errors_propagate(self, client, brand_context):
        client.messages.create.side_effect = ConnectionError('network down')
        with pytest.raises(ConnectionError):
            LLMPromptGenerator(client=client).generate('ws-1', brand_context)

    def test_client_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(AppConfig.claude, 'api_key', None)
        monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
        with pytest.raises(ValueError, match='ANTHROPIC_API_KEY required'):
            LLMPromptGenerator().client

    @patch('intelligence.services.llm_helper.Anthropic')
    def test_client_built_from_api_key(self, mock_anthropic):
        generator = LLMPromptGenerator(api_key='sk-test')
        assert generator.client is mock_anthropic.return_value
        mock_anthropic.assert_called_once_with(api_key='sk-test')
        # cached after first access
        assert generator.client is mock_anthropic.return_value
        assert mock_anthropic.call_count == 1
