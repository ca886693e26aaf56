"""
Catalog table names and product request statuses.

The catalog lives in Supabase; these are the only tables the assistant reads
or writes.
"""

PRODUCTS_TABLE = "products"
CATEGORIES_TABLE = "categories"
PRODUCT_REQUESTS_TABLE = "product_requests"

PRODUCT_REQUEST_STATUSES = {
    # Logged automatically by the assistant, nobody has looked at it yet
    'PENDING': 'pending',

    # Seen by staff
    'REVIEWED': 'reviewed',

    # Product is now stocked
    'FULFILLED': 'fulfilled',
}

# Hard upper bound on recommendations per response, whatever the caller asks for
MAX_RECOMMENDATIONS = 5

# Shopper queries longer than this are rejected before any upstream call
MAX_QUERY_LENGTH = 1000

# Candidates fetched from the catalog before ranking
MAX_CANDIDATES = 50
