#!/usr/bin/env python3
"""
Recommendation Query Script

Runs the recommendation pipeline locally against the real Gemini key pool
and the configured Supabase catalog, without starting the API server.

Usage:
    python scripts/query_recommendations.py --query "wireless earbuds under 2000"
    python scripts/query_recommendations.py --query "bluetooth speaker" --budget 3000 --category audio
    python scripts/query_recommendations.py --suite
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from storefront.db.client import get_supabase_client  # noqa: E402
from storefront.schemas.recommendations import (  # noqa: E402
    RecommendationContext,
    RecommendationQueryRequest,
    RecommendationResponse,
)
from storefront.services.api_key_pool import ApiKeyPool, build_api_key_pool  # noqa: E402
from storefront.services.recommendation_service import (  # noqa: E402
    CLARIFY_SUMMARY,
    get_recommendations,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def print_result(result: RecommendationResponse) -> None:
    """Pretty print the recommendation result."""
    print("\n" + "=" * 60)
    print(f"SUCCESS: {result.success}    ({result.processing_time_ms} ms)")
    print("=" * 60)

    if not result.success:
        print(f"\n❌ {result.error_code.value if result.error_code else 'ERROR'}: {result.error}\n")
        return

    if result.intent is not None:
        print("\nParsed intent:")
        print(json.dumps(result.intent.model_dump(by_alias=True, exclude_none=True), indent=2, ensure_ascii=False))

    print(f"\n{result.summary}\n")
    for i, product in enumerate(result.recommendations, 1):
        print(f"--- Product #{i} ---")
        print(f"  Name:      {product.name}")
        print(f"  Price:     ₹{product.price:,.0f}")
        print(f"  Category:  {product.category_id}")
        print(f"  Featured:  {'Yes' if product.featured else 'No'}")
        print(f"  Rating:    {product.average_rating if product.average_rating is not None else '-'}")
        print()


async def run_query(
    key_pool: ApiKeyPool,
    query: str,
    budget: Optional[float] = None,
    category: Optional[str] = None,
    max_results: Optional[int] = None,
) -> RecommendationResponse:
    """Run a single recommendation query."""
    print("\n" + "=" * 60)
    print(f"Query:     {query}")
    if budget is not None:
        print(f"Budget:    ₹{budget:,.0f}")
    if category:
        print(f"Category:  {category}")

    request = RecommendationQueryRequest(
        query=query,
        context=RecommendationContext(budget=budget, category_id=category),
        max_results=max_results,
    )
    result = await get_recommendations(
        request,
        key_pool=key_pool,
        supabase_client=get_supabase_client(),
    )
    print_result(result)
    return result


async def run_suite(key_pool: ApiKeyPool) -> None:
    """Run a few representative queries and check the shape of each answer."""
    cases = [
        {
            "name": "In catalog: earbuds with budget",
            "query": "wireless earbuds under 2000",
            "expect": "results",
        },
        {
            "name": "Not stocked: named product",
            "query": "red flying car under 10 lakhs",
            "expect": "request_logged",
        },
        {
            "name": "Vague query",
            "query": "something nice",
            "expect": "clarify",
        },
    ]

    passed = 0
    for case in cases:
        print(f"\n\n{'#' * 60}\n# {case['name']}\n{'#' * 60}")
        result = await run_query(key_pool, case["query"])

        if case["expect"] == "results":
            ok = result.success and 0 < len(result.recommendations) <= 5
        elif case["expect"] == "request_logged":
            ok = result.success and not result.recommendations and "logged a request" in result.summary
        else:
            ok = result.success and result.summary == CLARIFY_SUMMARY

        passed += int(ok)
        print(f"{'✅' if ok else '❌'} expected {case['expect']}")

        # Stay under the free-tier rate limit
        await asyncio.sleep(2)

    print("\n" + "=" * 60)
    print(f"Passed {passed}/{len(cases)}")
    print("=" * 60 + "\n")


def main():
    parser = argparse.ArgumentParser(
        description="Run the recommendation pipeline locally",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/query_recommendations.py --query "wireless earbuds under 2000"
  python scripts/query_recommendations.py -q "mixer grinder" -b 4000 -c home-appliances
  python scripts/query_recommendations.py --suite
        """
    )
    parser.add_argument("--query", "-q", type=str, help="Shopper query")
    parser.add_argument("--budget", "-b", type=float, help="Maximum budget in INR")
    parser.add_argument("--category", "-c", type=str, help="Category ID")
    parser.add_argument("--max-results", "-n", type=int, help="Number of results (max 5)")
    parser.add_argument("--suite", action="store_true", help="Run the sample query suite")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    key_pool = build_api_key_pool()
    if key_pool is None:
        print("\n⚠️  ERROR: no Gemini API keys configured!")
        print("   Set GEMINI_API_KEYS (comma separated) or GEMINI_API_KEY_1, GEMINI_API_KEY_2, ...")
        sys.exit(1)

    if args.suite:
        asyncio.run(run_suite(key_pool))
    elif args.query:
        asyncio.run(run_query(key_pool, args.query, args.budget, args.category, args.max_results))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
