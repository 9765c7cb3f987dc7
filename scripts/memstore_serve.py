"""
CLI for launching the memory store API server.

Usage:
    python scripts/memstore_serve.py
    python scripts/memstore_serve.py --port 8080 --host 127.0.0.1 --config config/memstore.yaml
"""

import argparse
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from memstore.config.settings import ENV_PATH_VAR, load_settings
from memstore.telemetry import configure_logging


def main():
    parser = argparse.ArgumentParser(
        description="Launch memstore FastAPI server"
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=f"YAML settings file (default: ${ENV_PATH_VAR} or built-in defaults)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (overrides server.host)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (overrides server.port)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (overrides server.log_level)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )

    args = parser.parse_args()

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # The app factory reloads settings in the server process
    if args.config:
        os.environ[ENV_PATH_VAR] = args.config

    host = args.host or settings.server.host
    port = args.port or settings.server.port
    log_level = (args.log_level or settings.server.log_level).upper()
    configure_logging(log_level, settings.server.json_logs)

    print(f"Starting memstore API server on {host}:{port}")
    print(f"API documentation available at: http://localhost:{port}/docs")

    uvicorn.run(
        "memstore.api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
        log_level=log_level.lower(),
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
