"""
Generator worker.
Claims pending summary generation requests, calls the AI provider and
records the outcome. Run with `python -m workers.generator.worker`.
"""
import argparse
import logging
import os
import time

from dotenv import load_dotenv

load_dotenv()

from apps.api.db.session import SessionLocal
from apps.api.errors import Conflict
from apps.api.services import generation

logger = logging.getLogger("workers.generator")

GENERATOR_POLL_SECONDS = float(os.getenv("GENERATOR_POLL_SECONDS", "5"))


def drain(session_factory=SessionLocal, book_id=None) -> int:
    """Process pending requests until none are left; returns how many ran."""
    handled = 0
    while True:
        db = session_factory()
        try:
            req = generation.process_next(db, book_id=book_id)
        except Conflict as e:
            logger.warning("request changed underneath the worker: %s", e.message)
            continue
        finally:
            db.close()
        if req is None:
            return handled
        handled += 1
        logger.info("request id=%s finished as %s", req.id, req.status)


def run(poll_seconds: float = GENERATOR_POLL_SECONDS, once: bool = False, session_factory=SessionLocal) -> None:
    while True:
        handled = drain(session_factory)
        if once:
            logger.info("processed %d request(s); exiting", handled)
            return
        if not handled:
            time.sleep(poll_seconds)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Process summary generation requests")
    parser.add_argument("--once", action="store_true", help="drain the queue once and exit")
    parser.add_argument("--poll", type=float, default=GENERATOR_POLL_SECONDS, help="seconds between polls")
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run(poll_seconds=args.poll, once=args.once)


if __name__ == "__main__":
    main()
