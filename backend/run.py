#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Creates missing tables and key files, then serves the broker with reload enabled.
For local development only.
"""
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

import uvicorn

from idbroker.core.config import settings
from idbroker.core.keys import get_key_ring
from idbroker.database import init_db

if __name__ == "__main__":
    init_db()
    get_key_ring()
    print(f"Issuer: {settings.oidc_issuer_uri}")
    print("API docs: http://localhost:8000/docs")

    uvicorn.run(
        "idbroker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_delay=0.5,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=5,
    )
