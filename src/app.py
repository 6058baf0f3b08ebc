"""Application entrypoint for the proxy core."""

import argparse
import asyncio
import logging
import signal
import sys

try:
    import uvloop
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
except Exception:
    pass

from config import ConfigError, ConfigLoader
from connection import ConnectionHandler
from constants import COLOR_PLAIN, DEFAULT_CONFIG_FILE, __version__
from logger import ProxyLogger
from server import ProxyServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sniproxy", description=f"SNIProxy {__version__}")
    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG_FILE, help="Path to config file (YAML or JSON)")
    parser.add_argument("-l", "--log-file", required=False, help="Path to log file")
    parser.add_argument("-d", "--debug", action="store_true", help="Debug mode (verbose log)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Remove console output")
    parser.add_argument("-v", "--version", action="version", version=f"SNIProxy {__version__}")
    return parser


async def wait_for_signal() -> signal.Signals:
    loop = asyncio.get_running_loop()
    received: asyncio.Future = loop.create_future()

    def on_signal(sig):
        if not received.done():
            received.set_result(sig)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except NotImplementedError:
            signal.signal(sig, lambda signum, _frame: loop.call_soon_threadsafe(on_signal, signal.Signals(signum)))
    return await received


async def serve(server: ProxyServer) -> signal.Signals:
    """Run the accept loop in the background until SIGINT/SIGTERM arrives."""
    await server.start()
    accept_loop = asyncio.create_task(server.server.serve_forever())
    try:
        return await wait_for_signal()
    finally:
        accept_loop.cancel()
        server.shutdown()


async def run(argv=None) -> None:
    logging.getLogger("asyncio").setLevel(logging.CRITICAL)
    args = build_parser().parse_args(argv)

    bootstrap = ProxyLogger(args.log_file, args.debug, args.quiet)
    try:
        config = ConfigLoader.apply_args(ConfigLoader.load_from_file(args.config), args).validate()
    except ConfigError as e:
        bootstrap.error(str(e))
        raise SystemExit(1)

    logger = ProxyLogger(config.log_file, config.debug, config.quiet)
    server = ProxyServer(config, ConnectionHandler(config, logger), logger)
    server.print_banner()
    sig = await serve(server)
    logger.service(f"received signal {sig.name}, exiting.", COLOR_PLAIN)
    logger.close()


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    sys.exit(main())
