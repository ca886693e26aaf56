"""
Recommendation Prompt Templates

Contains the system prompt and the user prompt builder for intent extraction.

Architecture:
- Pattern: single LLM call that turns a shopper query into a JSON intent
- Model: Gemini (model name from settings.GEMINI_MODEL)
- Temperature: 0.2 (near-deterministic)
- Output: JSON object, parsed leniently by the recommendation service

Ranking and the final answer are computed locally from the catalog, so the
model never sees product data and cannot invent products.

Prompt Engineering Pattern:
- Uses XML tags for structured content
- System prompt defines role only
- User prompt contains the query, context and the output schema
"""

from typing import Any, Dict, List, Optional, Sequence

# =============================================================================
# SYSTEM PROMPT
# =============================================================================

INTENT_SYSTEM_PROMPT = """You are the shopping assistant of an Indian retail store. You read a customer's message and describe what they want to buy as structured data.

<role>
You extract intent. You do NOT recommend products, invent product names from the store, or answer questions.
</role>

<rules>
- Use only category IDs from the provided category list; use null when unsure
- Amounts are in INR. "under 2000" means budget max 2000. "10 lakhs" means 1000000. "2 crore" means 20000000
- Use null for any amount you cannot determine. Never write words like "unknown" in a number field
- confidence is your certainty (0.0 to 1.0) that you understood what the customer wants
- Fill productRequestData only when the customer names a concrete product the store may not carry
</rules>

<output_format>
Return ONLY a JSON object. No markdown code blocks, no explanatory text.
</output_format>"""


# =============================================================================
# USER PROMPT BUILDER
# =============================================================================

INTENT_OUTPUT_SCHEMA = """{
  "category": "category ID from the list above, or null",
  "subcategory": "subcategory ID if applicable, or null",
  "requirements": ["specific requirements extracted from the query"],
  "budget": {"min": null or number, "max": null or number},
  "preferences": ["stated preferences like 'premium', 'simple', 'colorful'"],
  "useCase": "brief description of what they want to use the product for, or null",
  "confidence": 0.0 to 1.0,
  "productRequestData": null or {
    "name": "short product name, Title Case",
    "category": "category ID or name, or null",
    "maxBudget": null or number,
    "specifications": ["color, size, model or other specifics"]
  }
}"""


def _format_categories(categories: Sequence[Dict[str, Any]]) -> str:
    if not categories:
        return "(no category list available)"
    lines = []
    for category in categories:
        name = category.get("name") or category.get("id")
        lines.append(f"- {name} (ID: {category.get('id')})")
    return "\n".join(lines)


def _format_conversation(conversation: Optional[List[str]]) -> str:
    if not conversation:
        return ""
    turns = "\n".join(f"- {turn}" for turn in conversation[-6:])
    return f"""
<conversation_history>
Earlier messages from this customer, oldest first:
{turns}
</conversation_history>
"""


def build_intent_user_prompt(
    query: str,
    categories: Sequence[Dict[str, Any]] = (),
    budget_hint: Optional[float] = None,
    category_hint: Optional[str] = None,
    conversation: Optional[List[str]] = None,
) -> str:
    """
    Build the user prompt for intent extraction.

    Args:
        query: Shopper's free-text query (already validated)
        categories: Catalog categories, each with "id" and "name"
        budget_hint: Budget from the request context, if any
        category_hint: Category ID chosen in the UI, if any
        conversation: Previous shopper messages in this session

    Returns:
        Prompt text for the model
    """
    hints = []
    if budget_hint is not None:
        hints.append(f"- The customer set a maximum budget of {budget_hint:g} INR")
    if category_hint:
        hints.append(f"- The customer is browsing category ID {category_hint}")
    hints_block = ""
    if hints:
        hints_block = "\n<context>\n" + "\n".join(hints) + "\n</context>\n"

    return f"""<categories>
{_format_categories(categories)}
</categories>
{_format_conversation(conversation)}{hints_block}
<customer_query>
{query}
</customer_query>

<output_schema>
{INTENT_OUTPUT_SCHEMA}
</output_schema>"""
