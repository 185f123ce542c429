"""
Run the indexer until interrupted.

Usage: python -m stakesync [path/to/.env]

STAKESYNC_LOG_LEVEL, e.g. DEBUG, overrides the default INFO level.
"""

import os
import sys

from dotenv import load_dotenv

from stakesync.core.config import create_scheduler_from_env
from stakesync.utils.log import set_log_level


def main():
    dotenv_path = sys.argv[1] if len(sys.argv) > 1 else None
    if dotenv_path:
        load_dotenv(dotenv_path, verbose=True, override=True)
    set_log_level(os.getenv("STAKESYNC_LOG_LEVEL", "INFO").upper())
    create_scheduler_from_env().run_forever()


if __name__ == "__main__":
    main()
