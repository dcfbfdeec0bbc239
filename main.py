"""SafeSchool entrypoint.

- Loads `.env.production` then `.env` (the latter wins)
- Exposes the Assessment Service ASGI app for uvicorn/gunicorn
"""
from __future__ import annotations

import os

import uvicorn
from dotenv import load_dotenv

load_dotenv(".env.production")
load_dotenv(".env", override=True)

from services.assessment.app import app  # noqa: E402  (settings read at import)

# Export ASGI for uvicorn/gunicorn
__all__ = ["app"]


def main() -> None:
    """Serve the API; host/port come from HOST/PORT env vars."""
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("ENV") == "dev",
    )


if __name__ == "__main__":
    main()
