"""
Recommendation intent extraction - prompt templates.

The service layer is in:
- storefront/services/recommendation_service.py

Prompt templates are in:
- storefront/agents/recommendation/prompts.py
"""

from storefront.agents.recommendation.prompts import (
    INTENT_SYSTEM_PROMPT,
    build_intent_user_prompt,
)

__all__ = [
    "INTENT_SYSTEM_PROMPT",
    "build_intent_user_prompt",
]
