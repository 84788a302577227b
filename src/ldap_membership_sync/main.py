"""LDAP membership sync entrypoint.

Sets up logging and runs the sync engine once or in a loop, depending on
``RUN_ONCE``.
"""
import logging
import sys
import time

from ldap_membership_sync.config import Config
from ldap_membership_sync.core.constants import YES_VALUES
from ldap_membership_sync.sync_engine import run_sync

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def _setup_logging(debug: bool = False) -> logging.Logger:
    """Configure and return the application logger."""

    # Configure only the application logger, not the root logger
    app_logger = logging.getLogger("ldap_membership_sync")
    app_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    app_logger.propagate = False

    # Clear any existing handlers to avoid duplicate logs
    for h in list(app_logger.handlers):
        app_logger.removeHandler(h)

    formatter = logging.Formatter(
        fmt="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S %d.%m.%y",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    return app_logger


# ---------------------------------------------------------------------------
# Main entrypoint
# ---------------------------------------------------------------------------

def main() -> None:
    """Run the LDAP membership sync once or in a loop."""
    cfg = Config()
    logger = _setup_logging(cfg.debug in YES_VALUES)

    logger.info(
        "Starting sync (server=%s:%s, tls=%s, interval=%ss, run_once=%s, max_failures=%s)",
        cfg.ldap_server, cfg.ldap_port, cfg.ldap_tls, cfg.sync_interval, cfg.run_once, cfg.max_failures,
    )

    failures = 0

    while True:
        try:
            report = run_sync(cfg)
            for group in report.groups:
                logger.info("Group %s: %s", group.id or group.dn, ", ".join(group.members) or "(no members)")
            failures = 0  # reset on success
        except Exception:  # noqa: BLE001
            failures += 1
            logger.exception("Sync cycle failed (consecutive failures: %s)", failures)
            if failures >= cfg.max_failures:
                logger.critical("Exceeded MAX_CONSECUTIVE_FAILURES (%s), exiting", cfg.max_failures)
                sys.exit(1)
        if cfg.run_once:
            break
        time.sleep(cfg.sync_interval)

    logger.info("Sync finished, exiting")


if __name__ == "__main__":
    main()
