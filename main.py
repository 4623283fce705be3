#!/usr/bin/env python3
"""
CLI entry point serving the demo application.

Builds a configuration from command-line options, an optional YAML settings
file and RESTBOOT_* environment variables, starts the application and stops it
on SIGINT/SIGTERM.

    python main.py --protocol HTTP --host 0.0.0.0 --port 8080 --root-path api
"""

import argparse
import asyncio
import signal
import sys

from restboot.api.endpoints import create_app
from restboot.configuration.builder import builder
from restboot.configuration.store import ClientAuthMode, Configuration
from restboot.errors import BootstrapError
from restboot.logger import UnifiedLogger
from restboot.runtime.bootstrap import start
from restboot.settings import BootstrapSettings


logger = UnifiedLogger(tag="main")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Serve the restboot demo application")
    parser.add_argument("--protocol", choices=["HTTP", "HTTPS"], type=str.upper)
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    parser.add_argument("--root-path")
    parser.add_argument(
        "--client-auth",
        choices=[mode.value for mode in ClientAuthMode],
        type=str.upper,
    )
    parser.add_argument("--config", help="YAML bootstrap settings file")
    parser.add_argument(
        "--from-env", action="store_true", help="Import RESTBOOT_* environment variables"
    )
    return parser.parse_args(argv)


def build_configuration(args) -> Configuration:
    """Command-line options win over the settings file and the environment."""
    config_builder = builder()
    if args.from_env:
        config_builder.import_from(BootstrapSettings())
    if args.config:
        config_builder.import_from(args.config)

    if args.protocol:
        config_builder.protocol(args.protocol)
    if args.host:
        config_builder.host(args.host)
    if args.port is not None:
        config_builder.port(args.port)
    if args.root_path is not None:
        config_builder.root_path(args.root_path)
    if args.client_auth:
        config_builder.tls_client_auth_mode(ClientAuthMode(args.client_auth))
    return config_builder.build()


async def serve(configuration: Configuration) -> None:
    app = create_app()
    logger.setup_instrumentation(app)

    instance = await start(app, configuration)
    actual = instance.configuration()
    logger.info(
        "Instance running at {url}",
        url=instance.url,
        port=actual.port(),
        native=type(instance.unwrap(object)).__name__,
    )

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    await stop_requested.wait()
    result = await instance.stop()
    logger.info("Stop result: {result}", result=repr(result.unwrap(object)))


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        configuration = build_configuration(args)
        asyncio.run(serve(configuration))
    except BootstrapError as exc:
        logger.error("Bootstrap failed: {error}", error=str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
