#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import Settings
from app.db.factory import create_backend
from app.worker_runtime import create_worker


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the personal-thought worker loop against the content backend.")
    parser.add_argument(
        "--iterations",
        type=int,
        default=0,
        help="Stop after N iterations (0 means run forever).",
    )
    parser.add_argument("--worker-id", default="", help="Worker id passed to claim_next_job.")
    parser.add_argument("--env-file", default=".env", help="dotenv file loaded before reading settings")
    args = parser.parse_args()

    load_dotenv(args.env_file)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    settings = Settings.from_env()
    backend = create_backend(settings)
    worker = create_worker(backend, poll_interval_ms=settings.worker_poll_interval_ms)
    try:
        stats = worker.run_forever(
            worker_id=args.worker_id.strip() or settings.worker_id,
            stop_after_iterations=args.iterations if args.iterations > 0 else None,
        )
    finally:
        backend.close()
    print(json.dumps({"success": True, "stats": stats}, ensure_ascii=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
