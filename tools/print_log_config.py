"""Print the effective logging configuration resolved from the environment."""

import json
import logging
import os
import sys

from restohub.app_logging import LoggingSettings


def get_log_config():
    settings = LoggingSettings.from_env()
    return {
        "log_dir": os.path.abspath(settings.log_dir),
        "log_level": logging.getLevelName(settings.level),
        "log_json": settings.json,
        "retention_days": settings.retention_days,
        "rotate_utc": settings.rotate_utc,
        "request_bodies": settings.request_bodies,
    }


def main():
    sys.stdout.write(json.dumps(get_log_config(), indent=2) + "\n")


if __name__ == "__main__":
    main()
