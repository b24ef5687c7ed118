from __future__ import annotations

import argparse
import getpass
import logging
import sys

from bootstrap import DEFAULT_SUPERADMIN_EMAIL, run_bootstrap

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create tables and the default super admin.")
    parser.add_argument(
        "--prompt-password",
        action="store_true",
        help=f"Prompt for the password of `{DEFAULT_SUPERADMIN_EMAIL}` instead of reading DEFAULT_SUPERADMIN_PASSWORD.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    password = getpass.getpass("Super admin password: ") if args.prompt_password else None

    logger.info("Running backend bootstrap...")
    run_bootstrap(password=password)
    logger.info("Bootstrap completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
