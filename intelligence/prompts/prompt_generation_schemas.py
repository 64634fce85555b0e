"""GEO Prompt Generation Structured Output Schemas."""

PROMPT_INTENTS = ["BEST", "ALTERNATIVES", "COMPARISON", "TRUST", "PRICING", "HOW_TO", "PROBLEM_SOLUTION"]

PROMPT_GENERATION_SCHEMA = {
    "name": "prompt_generation_output",
    "description": "Generate buyer questions whose AI answers decide brand visibility",
    "input_schema": {
        "type": "object",
        "properties": {
            "prompts": {
                "type": "array",
                "description": "Generated buyer questions",
                "items": {
                    "type": "object",
                    "properties": {
                        "text": {
                            "type": "string",
                            "description": "The question as a user would ask it"
                        },
                        "intent": {
                            "type": "string",
                            "enum": PROMPT_INTENTS,
                            "description": "Search intent behind the question"
                        },
                        "commercial_intent": {
                            "type": "number",
                            "minimum": 0,
                            "maximum": 1,
                            "description": "0=informational, 1=ready to buy"
                        },
                        "industry_relevance": {
                            "type": "number",
                            "minimum": 0,
                            "maximum": 1,
                            "description": "How specific the question is to the brand's industry"
                        }
                    },
                    "required": ["text", "intent", "commercial_intent", "industry_relevance"]
                }
            }
        },
        "required": ["prompts"]
    }
}
