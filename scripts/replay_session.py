"""
Replay a Stripe Checkout Session through the payment reconciler.

Manual recovery for a completion webhook that never arrived (endpoint down,
secret rotated, ...). Every write is keyed on the session id, so running it
for a session that was already processed is a no-op.

Usage:
    python scripts/replay_session.py cs_live_a1B2c3...
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import structlog

from chef_bookings.db.engine import engine
from chef_bookings.logging_config import setup_logging
from chef_bookings.services.reconciler import reconcile_session
from chef_bookings.stripe_api.checkout import retrieve_session

setup_logging()
logger = structlog.get_logger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("session_ids", nargs="+", help="Checkout Session id(s), e.g. cs_live_...")
    args = parser.parse_args(argv)

    failures = 0
    for session_id in args.session_ids:
        try:
            session = retrieve_session(session_id)
            outcome = reconcile_session(engine, session)
            logger.info("session_replayed", session_id=session_id, **outcome.to_dict())
        except Exception:
            logger.exception("session_replay_failed", session_id=session_id)
            failures += 1

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
