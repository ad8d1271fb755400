"""
CLI entrypoint for identity-store maintenance. Run from project root:

  python -m empdash.maintenance cleanup   # drop credentials of unknown usernames
  python -m empdash.maintenance debug     # list stored credentials/users/deleted names
  python -m empdash.maintenance reset --yes
"""

import argparse
import logging
import sys

from empdash.core.config import get_settings
from empdash.services import auth as auth_service
from empdash.services.identity_store import get_identity_store

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    parser = argparse.ArgumentParser(description="EmpDash identity store maintenance.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("cleanup", help="Remove custom credentials of unknown usernames")
    sub.add_parser("debug", help="Print stored credential, user and deleted-name lists")
    reset = sub.add_parser("reset", help="Wipe all identity, session and profile state")
    reset.add_argument("--yes", action="store_true", help="Confirm the irreversible reset")
    args = parser.parse_args(argv)

    store = get_identity_store()
    try:
        if args.command == "cleanup":
            result = auth_service.cleanup_invalid_credentials(store)
            logger.info("Cleanup completed: cleaned=%s remaining=%s", result.cleaned, result.remaining)
            return 0
        if args.command == "debug":
            print(auth_service.get_credentials_debug_info(store).model_dump_json(indent=2))
            return 0
        if not args.yes:
            print("Refusing to reset without --yes.", file=sys.stderr)
            return 1
        result = auth_service.reset_all_data(store)
        print(result.message)
        return 0 if result.success else 1
    except Exception as e:
        logger.exception("Maintenance command %s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
