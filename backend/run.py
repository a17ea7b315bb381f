#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Creates missing tables on startup so a fresh SQLite file is usable.
"""
import os
from pathlib import Path
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("AUTO_CREATE_TABLES", "true")

import uvicorn

if __name__ == "__main__":
    print("Starting HomeService API at http://localhost:8000 (docs at /docs)")
    uvicorn.run("homeservice.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
