"""
The four fixed research steps.

Each step has a role (system message) and a prompt template. Templates receive
the research subject and the JSON of everything earlier steps produced, and
ask for the field names the report schema declares so the canonical pass has
as little aliasing to do as possible.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Tuple

# Keeps prompts under the model's context window when earlier steps are verbose
MAX_CONTEXT_CHARS = 24000

JSON_ONLY = (
    "Output ONLY valid JSON. Do not include any explanations or extra text. "
    "If a value is unknown use an empty string or an empty array."
)


@dataclass(frozen=True)
class ResearchStep:
    name: str
    role: str
    prompt_template: str

    def render_prompt(self, subject: str, context: Dict[str, Any]) -> str:
        return self.prompt_template.format(
            subject=subject,
            context=render_context(context),
            json_only=JSON_ONLY,
        )


def render_context(context: Dict[str, Any]) -> str:
    if not context:
        return "(no prior research yet)"
    text = json.dumps(context, indent=2, ensure_ascii=False, default=str)
    if len(text) > MAX_CONTEXT_CHARS:
        text = text[:MAX_CONTEXT_CHARS] + "\n... (truncated)"
    return text


OVERVIEW = ResearchStep(
    name="overview",
    role=(
        "You are a B2B sales intelligence researcher specializing in company "
        "analysis. Always return valid JSON."
    ),
    prompt_template=(
        "Research the company at: {subject}\n\n"
        "Prior research:\n{context}\n\n"
        "Return a JSON object with these keys:\n"
        '  "company_name": string,\n'
        '  "summary": 2-4 sentence overview,\n'
        '  "industry": string,\n'
        '  "headquarters": string,\n'
        '  "founded": string,\n'
        '  "company_type": string (public, private, non-profit, ...),\n'
        '  "company_size": string (employee range),\n'
        '  "revenue_range": string,\n'
        '  "funding_status": string,\n'
        '  "notable_clients": array of strings,\n'
        '  "social_media": {{"linkedin": string, "twitter": string, "facebook": string}}\n\n'
        "{json_only}"
    ),
)

MARKET_INTELLIGENCE = ResearchStep(
    name="market_intelligence",
    role=(
        "You are a market intelligence analyst focusing on competitive "
        "landscape and market positioning. Always return valid JSON."
    ),
    prompt_template=(
        "Using the prior research on {subject}, analyse its market.\n\n"
        "Prior research:\n{context}\n\n"
        "Return a JSON object with these keys:\n"
        '  "main_products": array of strings,\n'
        '  "target_market": {{"primary": string, "size_range": string, "industry_focus": array}},\n'
        '  "direct_competitors": array of strings,\n'
        '  "key_differentiators": array of strings,\n'
        '  "market_trends": array of strings\n\n'
        "{json_only}"
    ),
)

TECH_STACK = ResearchStep(
    name="tech_stack",
    role=(
        "You are a technology analyst specializing in tech stack analysis and "
        "integration opportunities. Always return valid JSON."
    ),
    prompt_template=(
        "Using the prior research on {subject}, analyse its technology landscape.\n\n"
        "Prior research:\n{context}\n\n"
        "Return a JSON object with these keys:\n"
        '  "backend_technologies": array of strings,\n'
        '  "frontend_technologies": array of strings,\n'
        '  "infrastructure": array of strings,\n'
        '  "key_platform_features": array of strings,\n'
        '  "integration_capabilities": array of strings,\n'
        '  "platform_compatibility": array of strings\n\n'
        "{json_only}"
    ),
)

SALES_GTM = ResearchStep(
    name="sales_gtm",
    role=(
        "You are a senior GTM strategist synthesizing company intelligence "
        "into an ideal customer profile and sales plan. Always return valid JSON."
    ),
    prompt_template=(
        "Synthesize the prior research on {subject} into an ICP and GTM plan.\n\n"
        "Prior research:\n{context}\n\n"
        "Return a JSON object with these keys:\n"
        '  "icp": {{"employee_range": string, "target_industries": array, "target_regions": array, "target_revenue": string}},\n'
        '  "buyer_personas": array of {{"title": string, "pain_points": array, "success_metrics": array}},\n'
        '  "sales_opportunities": array of {{"segment": string, "approach": string, "rationale": string}},\n'
        '  "gtm_recommendations": array of strings,\n'
        '  "metrics": array of strings\n\n'
        "{json_only}"
    ),
)

RESEARCH_STEPS: Tuple[ResearchStep, ...] = (
    OVERVIEW,
    MARKET_INTELLIGENCE,
    TECH_STACK,
    SALES_GTM,
)
