# logging_config.py
"""
Logging bootstrap.
- stdout + rotating bot.log for everything
- errors.log for the refbot logger tree (ERROR and above)
- payouts.log for withdrawal / payout activity
- optional Sentry when a DSN is given
"""

import logging
import os
from logging.handlers import RotatingFileHandler

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

FORMAT = "%(asctime)s | %(levelname)8s | %(name)s : %(message)s"
PAYOUT_LOGGERS = ("refbot.user_engine", "refbot.admin_engine")


def setup_logging(level: str = "INFO", log_dir: str = "logs", sentry_dsn: str = None):
    os.makedirs(log_dir, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    fmt = logging.Formatter(FORMAT)

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    fh = RotatingFileHandler(os.path.join(log_dir, "bot.log"), maxBytes=10*1024*1024, backupCount=5)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    ph = RotatingFileHandler(os.path.join(log_dir, "payouts.log"), maxBytes=5*1024*1024, backupCount=3)
    ph.setFormatter(fmt)
    for name in PAYOUT_LOGGERS:
        logging.getLogger(name).addHandler(ph)

    eh = RotatingFileHandler(os.path.join(log_dir, "errors.log"), maxBytes=5*1024*1024, backupCount=3)
    eh.setFormatter(fmt)
    eh.setLevel(logging.ERROR)
    logging.getLogger("refbot").addHandler(eh)

    if sentry_dsn:
        sentry_logging = LoggingIntegration(
            level=logging.INFO,        # breadcrumbs
            event_level=logging.ERROR  # events
        )
        sentry_sdk.init(dsn=sentry_dsn, integrations=[sentry_logging])
        root.info("Sentry initialized")

    root.info("Logging configured (level=%s)", level)
