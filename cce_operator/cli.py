"""Command line entry point: ``cce-operator`` / ``python -m cce_operator``."""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path

from loguru import logger

from cce_operator import __version__
from cce_operator.config import OperatorConfig, resolve_config
from cce_operator.controller import Controller, Handler
from cce_operator.exceptions import ConfigurationError
from cce_operator.huawei.driver import DriverCache
from cce_operator.logging import LogConfig, setup_logging, teardown_logging

log = logger.bind(component="cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cce-operator",
        description="Reconcile CCEClusterConfig records against Huawei Cloud CCE",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--kubeconfig", default=os.environ.get("KUBECONFIG"),
        help="Path to a kubeconfig. Only required if out-of-cluster.",
    )
    parser.add_argument(
        "--master", default=None,
        help="Address of the Kubernetes API server. Overrides the kubeconfig.",
    )
    parser.add_argument("--namespace", default=None, help="Only watch records in this namespace")
    parser.add_argument("--workers", type=int, default=None, help="Concurrent reconcile workers")
    parser.add_argument("--config-dir", type=Path, default=None, help="Directory holding cce-operator.toml")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def load(args: argparse.Namespace) -> OperatorConfig:
    return resolve_config(
        project_dir=args.config_dir,
        kubeconfig=args.kubeconfig,
        master=args.master,
        namespace=args.namespace,
        workers=args.workers,
        log_level="DEBUG" if args.debug else None,
    )


async def main(args: argparse.Namespace) -> int:
    logger.remove()
    try:
        config = load(args)
    except ConfigurationError as e:
        handler_ids = setup_logging(LogConfig())
        log.critical("Invalid configuration: {err}", err=e)
        teardown_logging(handler_ids)
        return 1

    handler_ids = setup_logging(config.log)
    try:
        return await run(config)
    finally:
        teardown_logging(handler_ids)


async def run(config: OperatorConfig) -> int:
    from cce_operator.store.kube import KubernetesStore

    try:
        store = KubernetesStore.from_kubeconfig(config.kubeconfig, config.master, config.namespace)
    except ConfigurationError as e:
        log.critical("Error building kubernetes client: {err}", err=e)
        return 1

    drivers = DriverCache(
        store,
        endpoint_template=config.endpoint_template,
        request_timeout=config.request_timeout,
    )
    handler = Handler(store, store, drivers, config.network)
    controller = Controller(store, handler, workers=config.workers)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    log.info("cce-operator {version} starting", version=__version__)
    try:
        await controller.run(stop)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await store.close()
    log.info("cce-operator stopped")
    return 0


def cli(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    sys.exit(asyncio.run(main(args)))


if __name__ == "__main__":
    cli()
