#!/usr/bin/env python3
"""
Run the HTTP API with uvicorn.

Usage:
    python scripts/serve.py [--host 127.0.0.1] [--port 8000] [--reload]
"""
from pathlib import Path
import argparse
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import uvicorn


def main(argv=None):
    parser = argparse.ArgumentParser(description="Serve the folio-engine API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development).")
    args = parser.parse_args(argv)

    # logging is configured by folio.main on import; keep uvicorn from replacing it
    uvicorn.run("folio.main:app", host=args.host, port=args.port, reload=args.reload, log_config=None)


if __name__ == "__main__":
    main()
