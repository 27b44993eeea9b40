"""
Membership AuthKit CLI Entry Point

Initializes logging and dispatches to the management commands.
"""

import sys

from membership_authkit.utils.logging import setup_logging


def main():
    logger = setup_logging()

    try:
        from membership_authkit.cli.cli_tools import handle_management

        sys.exit(handle_management())
    except (OSError, RuntimeError) as e:
        logger.error(f"❌ Failed to execute management command: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
