"""Uvicorn runner for the Vendorflow API and its orchestration workers.

The dispatcher runs inside the API process: starting the app starts the
worker pool. The ingress is in memory, so orders still queued at shutdown
are lost.

Usage:
    python src/server.py                      # Serve on 0.0.0.0:8000
    python src/server.py --port 9000 --reload
    python src/server.py --workers 16         # Orchestration pool size
"""

import argparse
import os

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Vendorflow API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    parser.add_argument("--workers", type=int, help="Orchestration worker pool size (WORKER_POOL_SIZE)")
    args = parser.parse_args()

    if args.workers is not None:
        os.environ["WORKER_POOL_SIZE"] = str(args.workers)

    uvicorn.run("app:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
