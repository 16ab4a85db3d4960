from __future__ import annotations

"""AI copywriting for website-builder sections.

Each section prompt asks the model for a small JSON object; the first
``{...}`` block in the reply is parsed and returned as-is.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from ..observability.metrics import AI_REQUESTS
from .llm import LLMError, complete
from .model_router import NoProviderAvailable


logger = logging.getLogger("ganadash.content_ai")

SECTION_TYPES = ("hero", "about", "products", "contact")
TONES = ("professional", "casual", "creative", "friendly")

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

_PROMPTS: Dict[str, str] = {
    "hero": """Create a compelling hero section for a website.
Business/Person: {description}
Tone: {tone}

Generate:
1. A catchy title (max 60 characters)
2. A subtitle that explains what they do (max 120 characters)

Format as JSON:
{{
  "title": "Your title here",
  "subtitle": "Your subtitle here"
}}""",
    "about": """Write an engaging "About" section for a website.
Business/Person: {description}
Tone: {tone}

Generate:
1. A section title (max 30 characters)
2. About text that tells their story (max 300 words)

Format as JSON:
{{
  "title": "About section title",
  "text": "About text here..."
}}""",
    "products": """Create product listings for a business.
Business: {description}
Tone: {tone}

Generate:
1. A products section title
2. 3-5 realistic products with names, descriptions, and prices

Format as JSON:
{{
  "title": "Products section title",
  "products": [
    {{
      "name": "Product name",
      "description": "Product description (max 100 chars)",
      "price": 99
    }}
  ]
}}""",
    "contact": """Create a contact section for a website.
Business/Person: {description}
Tone: {tone}

Generate:
1. A contact section title
2. Welcoming contact text (max 150 characters)

Format as JSON:
{{
  "title": "Contact section title",
  "text": "Contact text here..."
}}""",
}


class ContentFormatError(ValueError):
    """The model answered but not with a parseable JSON object."""


def build_section_prompt(section: str, description: str, business_type: Optional[str] = None, tone: Optional[str] = None) -> str:
    template = _PROMPTS[section]
    subject = description
    if business_type:
        subject = f"{description} ({business_type})"
    return template.format(description=subject, tone=tone or "professional")


def extract_json_object(text: str) -> Dict[str, Any]:
    match = _JSON_BLOCK.search(text or "")
    if not match:
        raise ContentFormatError("No valid JSON found in response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ContentFormatError(f"Invalid JSON in response: {exc}") from exc
    if not isinstance(data, dict):
        raise ContentFormatError("Expected a JSON object")
    return data


def generate_section(section: str, description: str, business_type: Optional[str] = None, tone: Optional[str] = None) -> Dict[str, Any]:
    """Generate one section.

    Raises ``NoProviderAvailable``, ``LLMError`` or ``ContentFormatError``.
    """
    prompt = build_section_prompt(section, description, business_type, tone)
    try:
        reply = complete("content", [{"role": "user", "content": prompt}])
        content = extract_json_object(reply["text"])
    except NoProviderAvailable:
        AI_REQUESTS.labels(feature="content", outcome="unconfigured").inc()
        raise
    except (LLMError, ContentFormatError):
        AI_REQUESTS.labels(feature="content", outcome="error").inc()
        raise
    AI_REQUESTS.labels(feature="content", outcome="ok").inc()
    logger.info("Generated %s section via %s", section, reply["provider"])
    return content


def generate_full_website(description: str, business_type: Optional[str] = None, tone: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    return {section: generate_section(section, description, business_type, tone) for section in SECTION_TYPES}
