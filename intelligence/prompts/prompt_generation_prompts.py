"""
GEO prompt generation - prompts used by the LLM-backed prompt generator.
"""

# --- SYSTEM CONTEXT ---
GEO_ANALYST_SYSTEM_PROMPT = (
    "You are a generative-engine-optimization analyst."
    " You model how real buyers phrase questions to AI assistants such as ChatGPT, Claude, Gemini and Perplexity."
    " Be concrete and concise."
)


# --- PROMPT GENERATION ---
PROMPT_GENERATION_PROMPT = """You are preparing a visibility audit for the brand "{brand_name}".

BRAND CONTEXT:
- Industry: {industry}
- Category: {category}
- Vertical: {vertical}
- Market type: {market_type}
- Service type: {service_type}
- Services: {services}

Write {max_prompts} distinct questions a prospective customer might ask an AI assistant
while researching this category. The questions decide which brands the assistant names,
so they must be the ones buyers actually ask, not questions about "{brand_name}" alone.

For each question provide:
1. **text**: the question exactly as a user would type it
2. **intent**: one of BEST, ALTERNATIVES, COMPARISON, TRUST, PRICING, HOW_TO, PROBLEM_SOLUTION
3. **commercial_intent**: 0-1, how close the asker is to a purchase decision
4. **industry_relevance**: 0-1, how specific the question is to {industry}

DISCIPLINE:
- Mix category-level questions ("best ... for ...") with brand-level ones (reviews, alternatives)
- No duplicates or trivial rephrasings
- Do not invent product names or facts about the brand
"""
