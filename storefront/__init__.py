"""
Storefront AI assistant backend.

Product recommendations for the storefront: natural language queries are turned
into a structured intent by an LLM, matched against the catalog and ranked.
"""
