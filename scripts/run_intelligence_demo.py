"""
Run the GEO intelligence pipeline end to end for a sample brand and save the
assembled response to a JSON file.

Collaborators are deterministic stand-ins, and one of them fails on purpose so
the degraded path shows up in the warnings. When ANTHROPIC_API_KEY is set the
prompt generation stage uses Claude instead.

Usage:
    python scripts/run_intelligence_demo.py
"""
import os
import sys
import json
import logging

sys.path.insert(0, os.getcwd())

from intelligence.core.config import AppConfig, log_level
from intelligence.orchestration.collaborators import IntelligenceCollaborators
from intelligence.orchestration.intelligence_orchestrator import IntelligenceOrchestrator
from intelligence.services.intelligence_service import IntelligenceService
from intelligence.services.llm_prompt_generator import LLMPromptGenerator

OUTPUT_DIR = os.path.join(os.getcwd(), 'scripts', 'output')
OUT_PATH = os.path.join(OUTPUT_DIR, 'acme_travel_intelligence.json')

COMPETITORS = ["Globetrek", "WanderWay", "RoamRight", "TripNest", "AirHaven", "VoyaPort"]


def detect_industry(workspace_id, domain):
    return {'primaryIndustry': 'Travel / Online Booking', 'secondaryIndustries': ['Hotels'], 'confidence': 0.86}


def summarize(workspace_id, domain, brand_name):
    return {'summary': f"{brand_name} sells curated travel packages online.", 'confidence': 0.78}


def generate_prompts(workspace_id, brand_context):
    return [
        {'text': f"best {brand_context.category.lower()} sites", 'intent': 'BEST', 'commercialIntent': 0.8},
        {'text': f"{brand_context.brand_name} vs Globetrek", 'intent': 'COMPARISON', 'commercialIntent': 0.7},
        {'text': "cheap all-inclusive trips", 'intent': 'PRICING', 'commercialIntent': 0.9},
        {'text': f"is {brand_context.brand_name} legit", 'intent': 'TRUST', 'commercialIntent': 0.5},
        {'text': "how to plan a multi-city trip", 'intent': 'HOW_TO', 'commercialIntent': 0.3},
    ]


def cluster_prompts(workspace_id, brand_name, prompt_texts, industry):
    return [
        {'title': 'Deal seekers', 'type': 'PRICING', 'prompts': prompt_texts[:3], 'value': 72, 'difficulty': 'medium'},
        {'title': 'Trust checks', 'type': 'TRUST', 'prompts': prompt_texts[3:], 'value': 48, 'difficulty': 'easy'},
    ]


def detect_competitors(workspace_id, domain, brand_name, industry):
    return [{'brandName': name, 'domain': f"{name.lower()}.com", 'confidence': 0.7} for name in COMPETITORS]


def share_of_voice(workspace_id, entities):
    share = 100.0 / len(entities)
    return [{'entity': e, 'shareOfVoice': share, 'mentions': 10} for e in entities]


def citations(workspace_id, domain, limit):
    return {'citations': [{'url': f"https://{domain}/guide", 'engine': 'perplexity'}], 'total': 1, 'confidence': 0.6}


def commercial_value(workspace_id, brand_name, cluster_prompts, industry):
    return {'visibilityValueIndex': 10 * len(cluster_prompts), 'commercialOpportunityScore': 55, 'confidence': 0.6}


def engine_patterns(workspace_id, brand_name, prompt_texts):
    return {'enginesRecognizing': ['perplexity'], 'enginesSuppressing': ['gemini'],
            'engineConfidence': {'chatgpt': 0.6, 'claude': 0.55, 'gemini': 0.4, 'perplexity': 0.7}}


def competitor_advantage(workspace_id, brand_name, competitor_name, prompt_texts):
    if competitor_name == "RoamRight":
        raise TimeoutError("upstream crawl timed out")
    return {'competitor': competitor_name, 'structuralAdvantageScore': 62, 'advantages': ['Review volume']}


def trust_failures(workspace_id, brand_name):
    raise ConnectionError("trust signal provider unavailable")


def fix_difficulty(workspace_id, brand_name, cluster_title, cluster_prompts):
    return {'clusterTitle': cluster_title, 'difficultyScore': 'hard', 'timeEstimate': '6-8 weeks'}


def geo_score(workspace_id, domain, brand_name, competitor_names, industry):
    return {
        'total': 62,
        'breakdown': {
            'aiVisibility': {'score': 70, 'weight': 0.35},
            'eeat': {'score': 60, 'weight': 0.25},
            'citations': {'score': 50, 'weight': 0.15},
            'competitorComparison': {'score': 55, 'weight': 0.15},
            'schemaTechnical': {'score': 65, 'weight': 0.10},
        },
    }


def opportunities(workspace_id, brand_name, domain, max_opportunities):
    return [
        {
            'title': f"Own the '{topic}' answer",
            'aiVisibility': {'chatgpt': 20, 'claude': 15, 'gemini': 5, 'perplexity': 35},
            'opportunityImpact': 70 - 5 * i,
            'difficulty': 'medium',
            'value': 60,
            'actionSteps': ['Publish a comparison page', 'Add FAQ schema'],
            'geoScoreImpact': {'min': 3, 'max': 8},
        }
        for i, topic in enumerate(['all-inclusive deals', 'family trips', 'last-minute breaks'])
    ][:max_opportunities]


def recommendations(workspace_id, brand_name, context):
    return [
        {'title': 'Add Organization and Review schema', 'priority': 'HIGH', 'difficulty': 'easy',
         'steps': ['Audit markup', 'Add schema', 'Validate', 'Monitor engines']},
        {'title': 'Earn third-party travel citations', 'priority': 'medium', 'difficulty': 'hard'},
    ]


def build_collaborators() -> IntelligenceCollaborators:
    prompt_generator = generate_prompts
    if os.getenv('ANTHROPIC_API_KEY'):
        prompt_generator = LLMPromptGenerator()
    return IntelligenceCollaborators(
        industry_classifier=detect_industry,
        business_summarizer=summarize,
        prompt_generator=prompt_generator,
        prompt_clusterer=cluster_prompts,
        competitor_detector=detect_competitors,
        share_of_voice=share_of_voice,
        citation_service=citations,
        commercial_value_scorer=commercial_value,
        engine_pattern_analyzer=engine_patterns,
        competitor_advantage_analyzer=competitor_advantage,
        trust_failure_detector=trust_failures,
        fix_difficulty_scorer=fix_difficulty,
        score_calculator=geo_score,
        opportunity_generator=opportunities,
        recommendation_generator=recommendations,
    )


def main():
    logging.basicConfig(level=log_level(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    os.makedirs(OUTPUT_DIR, exist_ok=True)

    config = AppConfig.from_env()
    orchestrator = IntelligenceOrchestrator(build_collaborators(), config=config)
    service = IntelligenceService(orchestrator, cache_config=config.cache)

    print('Running GEO intelligence for Acme Travel...')
    response, metrics = orchestrator.orchestrate_with_metrics('ws-demo', 'Acme Travel', 'acmetravel.example')
    print(metrics.to_frame().to_string(index=False))
    print(f"Confidence: {response.metadata.confidence}  Failed stages: {response.metadata.failed_stages}")
    for warning in response.metadata.warnings:
        print(' -', warning)

    report = service.get_intelligence('ws-demo', 'Acme Travel', 'acmetravel.example')
    print(f"Service status: {report.status_code}  Data quality ok: {report.data_quality.meets_threshold}")
    for issue in report.data_quality.issues:
        print(' *', issue)

    with open(OUT_PATH, 'w') as fh:
        json.dump(response.to_dict(), fh, indent=2)
    print('Snapshot saved to', OUT_PATH)


if __name__ == "__main__":
    main()
