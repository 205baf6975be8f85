"""
Command line entry point.

    flash-arb scan --config config.yaml [--once] [--duration SECONDS]
    flash-arb serve --config config.yaml [--host HOST] [--port PORT]
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import uvicorn

from . import logging_config
from .config_loader import load_settings
from .exceptions import ConfigurationError
from .service import build_service
from .utils import get_logger
from .version import get_version

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flash-arb", description="Flash-loan DEX arbitrage scanner and executor"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Run the scanner in the foreground")
    scan.add_argument("--config", help="Path to bot YAML configuration file")
    scan.add_argument("--once", action="store_true", help="Run a single scan cycle and exit")
    scan.add_argument(
        "--duration", type=float, help="Stop after this many seconds (default: run until Ctrl+C)"
    )

    serve = subparsers.add_parser("serve", help="Serve the HTTP control API")
    serve.add_argument("--config", help="Path to bot YAML configuration file")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    return parser


async def run_scan(config_path: Optional[str], once: bool, duration: Optional[float]) -> int:
    settings = load_settings(config_path)
    service = build_service(settings)
    mode = "SIMULATION" if settings.use_simulation else "REAL TRADING"
    logger.info(f"Network: {settings.network_mode} (chain {settings.chain_id}) | Mode: {mode}")

    try:
        if once:
            found = await service.scanner.scan_once()
            await service.scanner.wait_for_inflight()
            logger.info(f"Scan complete: {len(found)} opportunities")
            for opp in found:
                logger.info(
                    f"  {opp.pair_label} {opp.dex_path} gross {opp.gross_profit_percent:.3f}% "
                    f"net ${opp.estimated_profit_usd:.2f}"
                )
            return 0

        await service.scanner.start_scanning()
        try:
            if duration:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        finally:
            await service.scanner.stop_scanning()
        return 0
    finally:
        await service.close()


def run_serve(config_path: Optional[str], host: str, port: int) -> int:
    from .web_router import create_app

    settings = load_settings(config_path)
    app = create_app(build_service(settings))
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_level == "DEBUG":
        logging_config.setup_debug()
    else:
        logging_config.setup(level=getattr(logging, args.log_level))

    try:
        if args.command == "scan":
            return asyncio.run(run_scan(args.config, args.once, args.duration))
        return run_serve(args.config, args.host, args.port)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        logger.error(f"Remediation: {e.remediation}")
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130


if __name__ == "__main__":
    sys.exit(main())
