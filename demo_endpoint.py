"""
Quick demo script to run the shopping assistant API locally.

This script starts a local server and shows how to make requests to it.
"""

import uvicorn

if __name__ == "__main__":
    print("=" * 60)
    print("Starting Storefront AI Assistant Demo")
    print("=" * 60)
    print()
    print("📌 API Endpoints:")
    print("   - Health Check:     GET  http://localhost:8000/health")
    print("   - Recommendations:  POST http://localhost:8000/recommend")
    print("   - Recommendations:  GET  http://localhost:8000/recommend?q=...")
    print("   - Admin:                 http://localhost:8000/admin/...")
    print("   - API Docs:              http://localhost:8000/docs")
    print()
    print("🔐 Authentication:")
    print("   /recommend and /health are public.")
    print("   /admin/* requires: X-Admin-Token: <ADMIN_API_TOKEN>")
    print()
    print("📝 Test with curl:")
    print('   curl -X POST "http://localhost:8000/recommend" \\')
    print('     -H "Content-Type: application/json" \\')
    print('     -d \'{"query": "wireless earbuds under 2000", "maxResults": 3}\'')
    print()
    print("=" * 60)
    print("Starting server on http://localhost:8000")
    print("Press Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(
        "storefront.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
