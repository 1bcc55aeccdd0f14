"""Create the MongoDB indexes the application relies on.

The unique index on ``posts.post_id`` is what actually guarantees post
identifiers are never handed out twice.

Usage:
  MONGODB_URI=mongodb://localhost:27017 MONGODB_DB=hemung_board \
    python scripts/ensure_mongo_indexes.py
"""

from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys
from collections.abc import Sequence

from dotenv import load_dotenv
from pymongo.errors import PyMongoError

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from app.db import create_mongo_client, ensure_mongo_indexes  # noqa: E402

logger = logging.getLogger(__name__)


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Create MongoDB indexes")
    parser.add_argument("--uri", default=os.getenv("MONGODB_URI", "mongodb://localhost:27017"))
    parser.add_argument("--db", default=os.getenv("MONGODB_DB", "hemung_board"))
    parser.add_argument("--timeout-ms", type=int, default=int(os.getenv("MONGODB_TIMEOUT_MS", "5000")))
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    client = create_mongo_client(args.uri, args.timeout_ms)
    try:
        db = client[args.db]
        ensure_mongo_indexes(db)
        for name in ("posts", "users", "lottery_rounds"):
            logger.info("%s indexes: %s", name, sorted(db[name].index_information()))
    except PyMongoError:
        logger.exception("Failed to create indexes on %s", args.db)
        return 1
    finally:
        client.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
