#!/usr/bin/env python3
"""
Standalone server script.
Applies database migrations, then starts the FastAPI app under uvicorn.
"""
import sys
import os
import socket
import time
import traceback
from pathlib import Path

# Add the backend directory to the Python path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

# Set up environment
os.chdir(backend_dir)

# Ensure data directory exists
data_dir = backend_dir / 'data'
data_dir.mkdir(exist_ok=True)


# Run migrations once in this process before uvicorn starts (avoids running in async startup)
def run_migrations():
    try:
        from alembic.config import Config
        from alembic import command
        alembic_ini = backend_dir / "alembic.ini"
        if alembic_ini.exists():
            print("Running database migrations...")
            cfg = Config(str(alembic_ini))
            command.upgrade(cfg, "head")
            print("Migrations complete.")
        else:
            print("No alembic.ini found, skipping migrations.")
    except Exception as e:
        print(f"ERROR: Migrations failed: {e}", file=sys.stderr)
        traceback.print_exc(file=sys.stderr)
        sys.exit(1)


def is_port_in_use(host, port):
    """Check if a port is already in use."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return False
        except OSError:
            return True


if __name__ == "__main__":
    import uvicorn
    from app.core.config import settings

    HOST = settings.HOST
    PORT = settings.PORT

    # Retry a few times in case a previous instance is still shutting down
    for attempt in range(3):
        if not is_port_in_use(HOST, PORT):
            break
        print(f"Port {PORT} is in use. Retrying in 3s ({attempt + 1}/3)...", file=sys.stderr)
        time.sleep(3)
    else:
        print(f"ERROR: Port {PORT} is still in use after retries. Another instance may be running.", file=sys.stderr)
        sys.exit(1)

    run_migrations()

    # Test import before starting server
    try:
        print("Testing app import...")
        from app.main import app  # noqa: F401
        print("App import successful!")
    except Exception as e:
        print(f"ERROR: Failed to import app: {e}", file=sys.stderr)
        traceback.print_exc(file=sys.stderr)
        sys.exit(1)

    try:
        print(f"Starting uvicorn server on {HOST}:{PORT}...")
        uvicorn.run(
            "app.main:app",
            host=HOST,
            port=PORT,
            log_level="info",
            access_log=True,
            reload=False,
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)
