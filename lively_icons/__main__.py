# lively_icons/__main__.py
"""
Development server runner.

    python -m lively_icons
"""

import os

import uvicorn

from lively_icons.core.config import settings

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting {settings.api_title} ({settings.environment}) on http://localhost:{port}")
    print(f"API Docs: http://localhost:{port}/docs")

    uvicorn.run(
        "lively_icons.main:app",
        host="0.0.0.0",
        port=port,
        reload=not settings.is_production,
        log_level="info",
    )
