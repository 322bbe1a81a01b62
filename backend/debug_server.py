#!/usr/bin/env python3
"""
Development server with auto-reload.
Run migrations first (python -m scripts.init_db) if the database is new.
"""
import sys
import os
from pathlib import Path

# Add the backend directory to the Python path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

# Set up environment
os.chdir(backend_dir)

if __name__ == "__main__":
    import uvicorn
    from app.core.config import settings

    # Use import string format for reload to work properly
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="debug"
    )
