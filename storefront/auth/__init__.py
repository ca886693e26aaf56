"""Admin authentication for the key-pool and product-request endpoints."""
