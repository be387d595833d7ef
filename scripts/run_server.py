#!/usr/bin/env python3
"""
Startup script for the Timecard Generation Engine API server.
This ensures the Python path is set correctly.
"""

import os
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    load_dotenv(dotenv_path=str(project_root / ".env"))
    uvicorn.run(
        "timecard_engine.api_server:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "").lower() in ("1", "true", "yes"),
    )
