"""
Recommendation Service - LLM intent extraction + local catalog ranking

Turns a shopper's free-text query into ranked catalog products.

Pipeline (one request):
1. Validate       - query length, budget sign, maxResults
2. ParseIntent    - Gemini call through the ApiKeyPool, retried once with
                    the next key; the reply is parsed leniently
3. SanitizeIntent - descriptive strings in numeric fields become None
4. Retrieve       - catalog query by category / price band
5. Rank           - keyword overlap + budget proximity + featured boost
6. Decide         - confident match -> ranked list; otherwise
                    handle_missing_product (may log a product request)
7. Respond        - always a RecommendationResponse, never an exception

Key design points:
- The model only extracts intent; products always come from the catalog
- Upstream error details are logged, never returned to the shopper
- A failed product request write is logged and does not fail the request
- Model calls are shielded from client disconnects so key health is
  still updated; the result is simply dropped
"""

import asyncio
import json
import logging
import math
import re
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from pydantic import ValidationError
from supabase import Client

from storefront.agents.recommendation.prompts import build_intent_user_prompt
from storefront.config import settings
from storefront.schemas.recommendations import (
    Intent,
    Product,
    RecommendationContext,
    RecommendationQueryRequest,
    RecommendationResponse,
)
from storefront.services import llm_client
from storefront.services.api_key_pool import ApiKeyPool, Credential
from storefront.services.catalog_service import (
    ProductFilter,
    create_product_request,
    find_products,
    get_categories,
)
from storefront.utils.constants import MAX_QUERY_LENGTH, MAX_RECOMMENDATIONS
from storefront.utils.exceptions import (
    CatalogUnavailableError,
    ErrorCode,
    FailureKind,
    InputValidationError,
    IntentParseError,
    InternalError,
    PersistenceWarning,
    UpstreamCallError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

CompleteFn = Callable[[str, Credential], Awaitable[str]]

# First attempt + one retry with the next key
MAX_INTENT_ATTEMPTS = 2

CLARIFY_SUMMARY = (
    "I couldn't find products matching your request. Could you tell me a bit more "
    "about what you're looking for, such as the type of product, brand or budget?"
)

_STOPWORDS = {
    "and", "the", "for", "with", "without", "under", "over", "below", "above",
    "good", "best", "cheap", "some", "any", "that", "this", "you", "have",
    "want", "need", "looking", "from", "less", "than", "more", "rupees", "inr",
}

# Model calls still running after their request went away
_detached_calls: Set["asyncio.Task[str]"] = set()


@dataclass(frozen=True)
class RecommendationOptions:
    """Tuning parameters for one recommendation request."""
    max_results: int = MAX_RECOMMENDATIONS
    confidence_threshold: float = 0.5
    keyword_weight: float = 0.6
    price_weight: float = 0.3
    featured_weight: float = 0.1
    intent_timeout: float = 15.0
    catalog_timeout: float = 5.0

    @classmethod
    def from_settings(cls) -> "RecommendationOptions":
        return cls(
            max_results=min(settings.RECOMMENDATION_MAX_RESULTS, MAX_RECOMMENDATIONS),
            confidence_threshold=settings.RECOMMENDATION_CONFIDENCE_THRESHOLD,
            keyword_weight=settings.RANKING_KEYWORD_WEIGHT,
            price_weight=settings.RANKING_PRICE_WEIGHT,
            featured_weight=settings.RANKING_FEATURED_WEIGHT,
            intent_timeout=settings.INTENT_TIMEOUT_SECONDS,
            catalog_timeout=settings.CATALOG_TIMEOUT_SECONDS,
        )


# =============================================================================
# VALIDATION
# =============================================================================

def validate_request(
    request: RecommendationQueryRequest,
    options: RecommendationOptions,
) -> Tuple[str, int]:
    """
    Check a request before anything expensive happens.

    Returns:
        (stripped query, effective max_results)

    Raises:
        InputValidationError: With a message safe to show to the shopper
    """
    query = request.query
    if not isinstance(query, str) or not query.strip():
        raise InputValidationError("Query is required and must be a non-empty string", field="query")

    if len(query) > MAX_QUERY_LENGTH:
        raise InputValidationError(
            f"Query must be at most {MAX_QUERY_LENGTH} characters", field="query"
        )

    context = request.context
    if context is not None and context.budget is not None:
        budget = context.budget
        if isinstance(budget, bool) or not isinstance(budget, (int, float)) or not math.isfinite(budget) or budget < 0:
            raise InputValidationError("Budget must be a positive number", field="context.budget")

    if request.max_results is not None and request.max_results < 1:
        raise InputValidationError("maxResults must be at least 1", field="maxResults")

    max_results = request.max_results or options.max_results
    return query.strip(), min(max_results, options.max_results, MAX_RECOMMENDATIONS)


# =============================================================================
# INTENT PARSING + SANITIZATION
# =============================================================================

def _extract_json(raw: str) -> str:
    """Strip markdown fences and common LLM JSON mistakes."""
    content = raw.strip()

    block = re.search(r'```(?:json)?\s*([\s\S]*?)```', content, re.IGNORECASE)
    if block:
        content = block.group(1).strip()
    else:
        start = content.find('{')
        if start > 0:
            content = content[start:]

    # Trailing commas before } or ]
    content = re.sub(r',(\s*[}\]])', r'\1', content)
    # Control characters that break json.loads
    content = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', content)
    # Smart quotes
    content = content.replace('“', '"').replace('”', '"')
    return content


def coerce_amount(value: Any) -> Optional[float]:
    """
    Turn a model-provided amount into a float, or None.

    Numbers and numeric strings ("2,000", "₹500") are accepted. Words such as
    "unknown", booleans, negative and non-finite values become None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "").lstrip("₹").strip()
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number) or number < 0:
        return None
    return number


def _coerce_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() in ("null", "none", "unknown", "n/a"):
        return None
    return value


def _coerce_text_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _pick(data: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in data:
            return data[name]
    return None


def sanitize_intent_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a raw intent dict from the model before validation.

    Accepts both {"budget": {"min", "max"}} and flat budgetMin/budgetMax.
    Any numeric field the model filled with prose is dropped to None
    instead of failing the whole intent.
    """
    budget = data.get("budget")
    if isinstance(budget, dict):
        budget_min = coerce_amount(budget.get("min"))
        budget_max = coerce_amount(budget.get("max"))
    else:
        budget_min = coerce_amount(_pick(data, "budgetMin", "budget_min"))
        budget_max = coerce_amount(_pick(data, "budgetMax", "budget_max"))
        if budget_max is None:
            # A bare number is read as the maximum
            budget_max = coerce_amount(budget)
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        budget_min, budget_max = budget_max, budget_min

    confidence = coerce_amount(data.get("confidence"))
    if confidence is not None:
        confidence = min(confidence, 1.0)

    request_data = None
    raw_request = _pick(data, "productRequestData", "product_request_data")
    if isinstance(raw_request, dict):
        name = _coerce_text(raw_request.get("name"))
        if name:
            request_data = {
                "name": name,
                "category": _coerce_text(raw_request.get("category")),
                "max_budget": coerce_amount(_pick(raw_request, "maxBudget", "max_budget")),
                "specifications": _coerce_text_list(raw_request.get("specifications")),
            }

    return {
        "category": _coerce_text(data.get("category")),
        "subcategory": _coerce_text(data.get("subcategory")),
        "requirements": _coerce_text_list(data.get("requirements")),
        "budget": {"min": budget_min, "max": budget_max},
        "preferences": _coerce_text_list(data.get("preferences")),
        "use_case": _coerce_text(_pick(data, "useCase", "use_case")),
        "confidence": confidence,
        "product_request_data": request_data,
    }


def parse_intent_response(raw: str) -> Intent:
    """
    Parse the model's reply into an Intent.

    Raises:
        IntentParseError: If the reply is not a JSON object or does not fit
            the Intent shape even after sanitization
    """
    try:
        data = json.loads(_extract_json(raw))
    except json.JSONDecodeError as e:
        raise IntentParseError(f"Model reply is not valid JSON: {e.msg}", raw_preview=raw) from e

    if not isinstance(data, dict):
        raise IntentParseError("Model reply is not a JSON object", raw_preview=raw)

    try:
        return Intent.model_validate(sanitize_intent_data(data))
    except ValidationError as e:
        raise IntentParseError(f"Model reply does not match the intent shape: {e.error_count()} error(s)", raw_preview=raw) from e


# =============================================================================
# UPSTREAM CALL (through the key pool)
# =============================================================================

async def _call_model(
    key_pool: ApiKeyPool,
    complete: CompleteFn,
    prompt: str,
    credential: Credential,
    timeout: float,
) -> str:
    """One model call. Always reports the outcome for `credential` to the pool."""
    try:
        raw = await asyncio.wait_for(complete(prompt, credential), timeout=timeout)
    except asyncio.TimeoutError as e:
        key_pool.report_failure(credential.index, FailureKind.UNKNOWN)
        raise UpstreamCallError(f"Model call timed out after {timeout:g}s") from e
    except UpstreamCallError as e:
        key_pool.report_failure(credential.index, e.kind)
        raise
    except Exception as e:
        key_pool.report_failure(credential.index, FailureKind.UNKNOWN)
        raise UpstreamCallError(f"Unexpected upstream error: {type(e).__name__}") from e

    key_pool.report_success(credential.index)
    return raw


def _forget_call(task: "asyncio.Task[str]") -> None:
    _detached_calls.discard(task)
    if not task.cancelled():
        # Retrieve the exception so an abandoned call does not warn on GC
        task.exception()


async def _call_model_shielded(
    key_pool: ApiKeyPool,
    complete: CompleteFn,
    prompt: str,
    credential: Credential,
    timeout: float,
) -> str:
    """
    Run a model call that survives cancellation of the caller.

    If the inbound request is aborted, the call keeps running so the key's
    health is recorded; its result is discarded.
    """
    task = asyncio.ensure_future(_call_model(key_pool, complete, prompt, credential, timeout))
    _detached_calls.add(task)
    task.add_done_callback(_forget_call)
    return await asyncio.shield(task)


async def _load_categories(supabase_client: Client, timeout: float) -> List[Dict[str, Any]]:
    """Category list for the prompt. Best effort: the prompt works without it."""
    try:
        return await asyncio.wait_for(get_categories(supabase_client), timeout=timeout)
    except Exception as e:
        logger.warning(f"Could not load categories for intent prompt: {type(e).__name__}")
        return []


async def extract_intent(
    query: str,
    context: RecommendationContext,
    *,
    key_pool: ApiKeyPool,
    supabase_client: Client,
    complete: CompleteFn,
    options: RecommendationOptions,
) -> Intent:
    """
    Ask the model for the shopper's intent, retrying once with the next key.

    Raises:
        UpstreamUnavailableError: If no key is usable or both attempts fail
    """
    categories = await _load_categories(supabase_client, options.catalog_timeout)
    prompt = build_intent_user_prompt(
        query=query,
        categories=categories,
        budget_hint=context.budget,
        category_hint=context.category_id,
        conversation=context.conversation,
    )

    last_error: Optional[Exception] = None
    for attempt in range(1, MAX_INTENT_ATTEMPTS + 1):
        credential = key_pool.get_next_credential()
        try:
            raw = await _call_model_shielded(
                key_pool, complete, prompt, credential, options.intent_timeout
            )
            intent = parse_intent_response(raw)
        except (UpstreamCallError, IntentParseError) as e:
            last_error = e
            logger.warning(
                f"Intent attempt {attempt}/{MAX_INTENT_ATTEMPTS} failed with key "
                f"{credential.index}: {e.message}"
            )
            continue

        logger.info(
            f"Intent parsed: category={intent.category}, confidence={intent.confidence}, "
            f"product_request={'yes' if intent.product_request_data else 'no'}"
        )
        return intent

    raise UpstreamUnavailableError(
        details={"last_error": type(last_error).__name__ if last_error else None}
    )


# =============================================================================
# RETRIEVAL + RANKING
# =============================================================================

def extract_keywords(intent: Intent) -> List[str]:
    """Lowercase keywords from the intent's requirements and preferences."""
    keywords: List[str] = []
    for phrase in intent.requirements + intent.preferences:
        for token in re.findall(r"[a-z0-9]+", phrase.lower()):
            if (len(token) >= 3 or token.isdigit()) and token not in _STOPWORDS and token not in keywords:
                keywords.append(token)
    return keywords


def resolve_budget(intent: Intent, context: RecommendationContext) -> Tuple[Optional[float], Optional[float]]:
    """Price band for retrieval and ranking. The request context wins over the intent."""
    budget_max = context.budget
    if budget_max is None:
        budget_max = intent.budget.max
    if budget_max is None and intent.product_request_data is not None:
        budget_max = intent.product_request_data.max_budget

    budget_min = intent.budget.min
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        budget_min = None
    return budget_min, budget_max


def resolve_product_filter(intent: Intent, context: RecommendationContext) -> ProductFilter:
    """Catalog filter for the resolved category and price band."""
    budget_min, budget_max = resolve_budget(intent, context)
    return ProductFilter(
        category_id=context.category_id or intent.subcategory or intent.category,
        min_price=budget_min,
        max_price=budget_max,
        exclude_ids=tuple(context.exclude_product_ids),
    )


def _product_text(product: Product) -> str:
    return " ".join([product.name, product.description or "", " ".join(product.tags)]).lower()


def keyword_overlap(product: Product, keywords: List[str]) -> float:
    """Share of keywords found in the product's name, description or tags (0-1)."""
    if not keywords:
        return 0.0
    text = _product_text(product)
    return sum(1 for keyword in keywords if keyword in text) / len(keywords)


def price_proximity(price: float, budget_min: Optional[float], budget_max: Optional[float]) -> float:
    """
    Closeness of `price` to the middle of the budget band (0-1).

    With only a maximum the band is [0, max]. Without a maximum there is no
    midpoint and the price does not contribute.
    """
    if budget_max is None:
        return 0.0
    midpoint = ((budget_min or 0.0) + budget_max) / 2
    if midpoint <= 0:
        return 0.0
    return max(0.0, 1.0 - abs(price - midpoint) / midpoint)


def score_product(
    product: Product,
    keywords: List[str],
    budget_min: Optional[float],
    budget_max: Optional[float],
    options: RecommendationOptions,
) -> float:
    score = options.keyword_weight * keyword_overlap(product, keywords)
    score += options.price_weight * price_proximity(product.price, budget_min, budget_max)
    if product.featured:
        score += options.featured_weight
    return score


def rank_products(
    products: List[Product],
    keywords: List[str],
    budget_min: Optional[float],
    budget_max: Optional[float],
    options: RecommendationOptions,
) -> List[Product]:
    """
    Order products best-first.

    Ties on score are broken by higher average rating, then by catalog order.
    """
    scored = []
    for position, product in enumerate(products):
        score = round(score_product(product, keywords, budget_min, budget_max, options), 6)
        scored.append((score, product.average_rating or 0.0, position, product))

    scored.sort(key=lambda item: (-item[0], -item[1], item[2]))
    return [item[3] for item in scored]


async def _query_catalog(
    supabase_client: Client,
    product_filter: ProductFilter,
    timeout: float,
) -> List[Dict[str, Any]]:
    try:
        return await asyncio.wait_for(find_products(supabase_client, product_filter), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise CatalogUnavailableError(f"Catalog query timed out after {timeout:g}s", e) from e
    except Exception as e:
        raise CatalogUnavailableError("Catalog query failed", e) from e


def _to_products(rows: List[Dict[str, Any]]) -> List[Product]:
    products = []
    for row in rows:
        try:
            products.append(Product.model_validate(row))
        except ValidationError:
            logger.warning(f"Skipping malformed catalog row id={row.get('id')}")
    return products


def _relevant(products: List[Product], keywords: List[str]) -> List[Product]:
    """Products mentioning at least one keyword. Without keywords nothing is filtered."""
    if not keywords:
        return products
    return [p for p in products if keyword_overlap(p, keywords) > 0]


async def retrieve_candidates(
    supabase_client: Client,
    intent: Intent,
    context: RecommendationContext,
    keywords: List[str],
    options: RecommendationOptions,
) -> List[Product]:
    """
    Fetch candidate products for the intent.

    When the intent has keywords, only products mentioning at least one of
    them are candidates. If the category filter yields none, the search is
    repeated across all categories.
    """
    product_filter = resolve_product_filter(intent, context)
    rows = await _query_catalog(supabase_client, product_filter, options.catalog_timeout)
    candidates = _relevant(_to_products(rows), keywords)

    if candidates or not product_filter.category_id or not keywords:
        return candidates

    logger.info(f"No relevant products in category '{product_filter.category_id}', searching all categories")
    rows = await _query_catalog(
        supabase_client, replace(product_filter, category_id=None), options.catalog_timeout
    )
    return _relevant(_to_products(rows), keywords)


# =============================================================================
# RESPONSE BUILDING
# =============================================================================

def build_summary(count: int, intent: Intent) -> str:
    """One-sentence summary naming how many products matched and where."""
    noun = "product" if count == 1 else "products"
    verb = "is" if count == 1 else "are"
    label = intent.subcategory or intent.category
    if label:
        return f"Here {verb} {count} {noun} from {label} that match what you're looking for."
    return f"Here {verb} {count} {noun} that match what you're looking for."


def normalize_query(query: str) -> str:
    return " ".join(query.lower().split())


async def handle_missing_product(
    query: str,
    intent: Intent,
    context: RecommendationContext,
    *,
    supabase_client: Client,
    options: RecommendationOptions,
    logged_queries: Set[str],
) -> str:
    """
    Fallback when nothing suitable was found.

    If the model named a concrete product, a product request is logged for
    staff follow-up (once per normalized query in `logged_queries`). Vague
    queries only get a clarification prompt, so they do not create noise.

    Returns:
        Summary text for the shopper
    """
    request_data = intent.product_request_data
    if request_data is None:
        logger.info("No match and no product name extracted, asking shopper to clarify")
        return CLARIFY_SUMMARY

    normalized = normalize_query(query)
    if normalized not in logged_queries:
        logged_queries.add(normalized)
        logger.info(f"Auto-submitting product request for '{request_data.name}'")
        try:
            await asyncio.wait_for(
                create_product_request(
                    supabase_client,
                    product_name=request_data.name,
                    description=f'Requested via the shopping assistant: "{query}"',
                    category=request_data.category or intent.category,
                    max_budget=request_data.max_budget,
                    specifications=request_data.specifications,
                    user_contact=context.user_contact,
                ),
                timeout=options.catalog_timeout,
            )
        except Exception as e:
            warning = PersistenceWarning("Product request could not be saved", e)
            logger.warning(
                f"{warning.code.value}: product request for '{request_data.name}' "
                f"not saved ({warning.details.get('error_type')})"
            )

    return (
        f"We don't have {request_data.name} in our catalog right now. "
        "I've logged a request so our team can look into stocking it."
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _failure(message: str, code: ErrorCode, start: float) -> RecommendationResponse:
    return RecommendationResponse(
        success=False,
        error=message,
        error_code=code,
        recommendations=[],
        summary="",
        processing_time_ms=_elapsed_ms(start),
    )


async def get_recommendations(
    request: RecommendationQueryRequest,
    *,
    key_pool: Optional[ApiKeyPool],
    supabase_client: Client,
    complete: Optional[CompleteFn] = None,
    options: Optional[RecommendationOptions] = None,
) -> RecommendationResponse:
    """
    Answer a shopper query with ranked catalog products.

    Args:
        request: Query, optional context and requested result count
        key_pool: Process-wide Gemini key pool (None when no keys are configured)
        supabase_client: Catalog / product request store
        complete: Model call, defaults to llm_client.complete
        options: Tuning parameters, defaults to settings

    Returns:
        RecommendationResponse. Never raises: every failure is mapped to
        success=False with a safe message and an ErrorCode.
    """
    start = time.perf_counter()
    options = options or RecommendationOptions.from_settings()
    complete = complete or llm_client.complete

    try:
        query, max_results = validate_request(request, options)
        context = request.context or RecommendationContext()
        logger.info(f"Recommendation requested: query='{query[:50]}', max_results={max_results}")

        if key_pool is None:
            raise UpstreamUnavailableError(details={"reason": "no API keys configured"})

        intent = await extract_intent(
            query,
            context,
            key_pool=key_pool,
            supabase_client=supabase_client,
            complete=complete,
            options=options,
        )

        keywords = extract_keywords(intent)
        candidates = await retrieve_candidates(supabase_client, intent, context, keywords, options)
        confident = intent.confidence is None or intent.confidence >= options.confidence_threshold

        if candidates and confident:
            budget_min, budget_max = resolve_budget(intent, context)
            ranked = rank_products(candidates, keywords, budget_min, budget_max, options)[:max_results]
            logger.info(f"Returning {len(ranked)} of {len(candidates)} candidates")
            return RecommendationResponse(
                success=True,
                recommendations=ranked,
                summary=build_summary(len(ranked), intent),
                intent=intent,
                processing_time_ms=_elapsed_ms(start),
            )

        summary = await handle_missing_product(
            query,
            intent,
            context,
            supabase_client=supabase_client,
            options=options,
            logged_queries=set(),
        )
        return RecommendationResponse(
            success=True,
            recommendations=[],
            summary=summary,
            intent=intent,
            processing_time_ms=_elapsed_ms(start),
        )

    except InputValidationError as e:
        logger.info(f"Rejected recommendation request: {e.message}")
        return _failure(e.message, e.code, start)
    except UpstreamUnavailableError as e:
        logger.warning(f"Recommendation service degraded: {e.message} {e.details}")
        return _failure(UpstreamUnavailableError().message, ErrorCode.UPSTREAM_UNAVAILABLE, start)
    except CatalogUnavailableError as e:
        logger.error(f"Catalog unavailable: {e.message} {e.details}")
        return _failure(InternalError().message, ErrorCode.INTERNAL, start)
    except Exception:
        logger.exception("Unexpected error while building recommendations")
        return _failure(InternalError().message, ErrorCode.INTERNAL, start)
