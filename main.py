"""
main.py — CarbonWise Application Entry Point
=============================================
Launches the FastAPI application located in carbonwise/main.py.
Run from the project root with:

    uvicorn carbonwise.main:app --reload --host 0.0.0.0 --port 8000

Or simply:
    python main.py
"""

import uvicorn

from carbonwise.config import settings
from carbonwise.main import app  # noqa: F401  (re-exported for uvicorn)


if __name__ == "__main__":
    uvicorn.run(
        "carbonwise.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug,
        log_level=settings.log_level.lower(),
    )
