#!/usr/bin/env python3
# backend/run.py
"""
Local development server.

Serves the API with auto-reload; the Celery worker and beat are started
separately with ``celery -A mentorship.tasks.celery_app worker --beat``.
"""
import os
from pathlib import Path
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

import uvicorn  # noqa: E402

if __name__ == "__main__":
    print("Starting mentorship API at http://localhost:8000 (docs at /docs)")
    uvicorn.run("mentorship.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
