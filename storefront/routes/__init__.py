"""
FastAPI routers for all API endpoints.

- recommendations: POST/GET /recommend
- health: GET /health
- admin: key pool and product request administration
"""
