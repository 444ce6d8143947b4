"""
Confsyncer CLI - Keep a local directory in sync with an etcd prefix

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/cli.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: CLI Entry Point

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Argument parsing, logging setup and the
                                connect / reconcile / propagate sequence.
2026-10-19  Confsyncer  MODIFY  Handle Ctrl-C during connect and
                                reconciliation.
-------------------------------------------------------------------------------

License: MIT

USAGE:
    # Pull everything from etcd into /etc/myapp and exit
    confsyncer --etcd-endpoint http://127.0.0.1:2379 --kv-prefix /myapp \
        --location /etc/myapp --just-pull

    # Reconcile, then keep both sides in sync until SIGINT/SIGTERM
    confsyncer --etcd-endpoint http://127.0.0.1:2379 --kv-prefix /myapp \
        --location /etc/myapp

Every flag falls back to its CONFSYNCER_* environment variable
(e.g. CONFSYNCER_ETCD_ENDPOINT).
===============================================================================
"""

from typing import List, Optional
import argparse
import logging
import signal
import sys
import threading

from . import __version__
from .config import LOG_LEVELS, SyncerConfig
from .exceptions import (
    ConfigValidationError,
    EnumerationError,
    ReconciliationError,
    StoreSetupError,
)
from .stores.base import BaseConfStore
from .stores.factory import StoreFactory
from .sync_engine import ReconcileResult, Syncer

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


# =============================================================================
# Argument Parsing
# =============================================================================

def build_parser(defaults: Optional[SyncerConfig] = None) -> argparse.ArgumentParser:
    """Build the argument parser, seeding defaults from the environment"""
    defaults = defaults or SyncerConfig()

    parser = argparse.ArgumentParser(
        prog="confsyncer",
        description="Keep a local config directory and an etcd key prefix in sync",
    )

    # Mandatory parameters (flag or environment)
    parser.add_argument("--etcd-endpoint", default=defaults.etcd_endpoint,
                        help="etcd endpoint to reach (e.g. http://127.0.0.1:2379)")
    parser.add_argument("--kv-prefix", default=defaults.kv_prefix,
                        help="etcd prefix containing files to synchronize")
    parser.add_argument("--location", default=defaults.location,
                        help="Folder to sync")

    # Mode
    parser.add_argument("--just-pull", action="store_true", default=defaults.just_pull,
                        help="Pull files from etcd and exit")
    parser.add_argument("--strict", action="store_true", default=defaults.strict_reconcile,
                        help="Abort if any item fails to be written during reconciliation")

    # Tuning
    parser.add_argument("--log-level", default=defaults.log_level, type=str.lower,
                        choices=LOG_LEVELS, help="Log level (default: info)")
    parser.add_argument("--request-timeout", type=float, default=defaults.request_timeout,
                        help="etcd request timeout in seconds (default: 5)")
    parser.add_argument("--max-retries", type=int, default=defaults.max_retries,
                        help="Retries for failed etcd requests (default: 3)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def parse_config(argv: Optional[List[str]] = None,
                 parser: Optional[argparse.ArgumentParser] = None) -> SyncerConfig:
    """
    Parse arguments into a validated SyncerConfig.

    Missing mandatory parameters end the process through parser.error().
    """
    parser = parser or build_parser(SyncerConfig.from_env())
    args = parser.parse_args(argv)

    config = SyncerConfig.from_env()
    config.etcd_endpoint = args.etcd_endpoint
    config.kv_prefix = args.kv_prefix
    config.location = args.location
    config.just_pull = args.just_pull
    config.strict_reconcile = args.strict
    config.log_level = args.log_level
    config.request_timeout = args.request_timeout
    config.max_retries = args.max_retries

    try:
        config.validate()
    except ConfigValidationError as e:
        if e.message == "missing mandatory parameters":
            parser.error("ALL parameters --etcd-endpoint --kv-prefix and --location must be set "
                         f"(missing: {e.details})")
        parser.error(str(e))

    return config


# =============================================================================
# Run Sequence
# =============================================================================

def _report(result: ReconcileResult) -> None:
    if result.success:
        logger.info(
            f"{result.operation}: {result.items_written} written, "
            f"{result.items_skipped} skipped"
        )
    else:
        logger.warning(
            f"{result.operation}: {result.items_failed} of {result.items_read} item(s) "
            f"failed: {'; '.join(result.errors)}"
        )


def _install_signal_handlers(stop: threading.Event) -> None:
    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop.set()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)


def run(config: SyncerConfig, install_signals: bool = True) -> int:
    """
    Connect both stores, reconcile, then propagate until asked to stop.

    Returns:
        Process exit status
    """
    stores: List[BaseConfStore] = []
    syncer: Optional[Syncer] = None
    watch = not config.just_pull

    try:
        remote = StoreFactory.create("etcd", config.remote_store_settings())
        stores.append(remote)
        remote.connect(watch=watch)

        logger.info(f"Creating local store over directory: {config.location}")
        local = StoreFactory.create("disk", config.local_store_settings())
        stores.append(local)
        local.connect(watch=watch)

        syncer = Syncer(local, remote, strict=config.strict_reconcile)

        pulled = syncer.pull_from_remote()
        _report(pulled)
        logger.info("Remote config successfully pulled and applied")
        if config.just_pull:
            return EXIT_OK

        pushed = syncer.add_local_conf_to_remote_store()
        _report(pushed)
        logger.info("Missing local files successfully added into remote store")

        shutdown = threading.Event()
        if install_signals:
            _install_signal_handlers(shutdown)

        syncer.start()
        logger.info("Keeping local and remote config stores in sync...")
        while syncer.is_running and not shutdown.is_set():
            syncer.wait(timeout=1.0)
        return EXIT_OK

    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
        return EXIT_OK
    except ConfigValidationError as e:
        logger.critical(f"Invalid configuration: {e}")
        return EXIT_USAGE
    except StoreSetupError as e:
        logger.critical(f"Startup failed at stage '{e.stage}': {e}")
        return EXIT_FAILURE
    except EnumerationError as e:
        logger.critical(f"Startup failed at stage 'enumerate': {e}")
        return EXIT_FAILURE
    except ReconciliationError as e:
        logger.critical(f"Startup failed at stage 'reconcile': {e}")
        return EXIT_FAILURE
    finally:
        if syncer is not None:
            syncer.stop(timeout=5.0)
        for store in reversed(stores):
            store.close()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    config = parse_config(argv)

    logging.basicConfig(
        level=config.logging_level,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    return run(config)


if __name__ == "__main__":
    sys.exit(main())
