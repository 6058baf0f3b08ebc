"""Proxy server orchestration."""

import asyncio
import socket

from constants import BUF_SIZE, COLOR_GREEN, COLOR_PLAIN


class ProxyServer:
    def __init__(self, config, connection_handler, logger):
        self.config = config
        self.connection_handler = connection_handler
        self.logger = logger
        self.server = None

    def print_banner(self) -> None:
        for rule in self.config.rules:
            self.logger.service(f"loaded rule: {rule}", COLOR_GREEN)
        self.logger.service(f"debug mode: {self.config.debug}", COLOR_GREEN)
        self.logger.service(f"front proxy: {self.config.enable_socks5}", COLOR_GREEN)
        self.logger.service(f"allow all hosts: {self.config.allow_all_hosts}", COLOR_GREEN)
        if self.config.sni_parser != "marker":
            self.logger.service(f"SNI parser: {self.config.sni_parser}", COLOR_GREEN)

    def _handle_loop_exception(self, loop, context) -> None:
        # accept() failures are reported here and the server keeps accepting
        exc = context.get("exception")
        message = context.get("message", "event loop error")
        self.logger.error(f"event loop error: {message}" + (f": {exc!r}" if exc else ""))

    async def start(self) -> None:
        asyncio.get_running_loop().set_exception_handler(self._handle_loop_exception)
        try:
            self.server = await asyncio.start_server(
                self.connection_handler.handle_connection,
                self.config.host,
                self.config.port,
                limit=BUF_SIZE,
            )
        except OSError as e:
            self.logger.error(f"failed to listen on {self.config.listen_addr}: {e}")
            raise SystemExit(1)

        try:
            for s in self.server.sockets or []:
                s.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass

        for addr in self.bound_addresses():
            self.logger.service(f"listening on: {addr}", COLOR_PLAIN)

    def bound_addresses(self):
        addrs = []
        for s in self.server.sockets if self.server else []:
            name = s.getsockname()
            addrs.append(f"[{name[0]}]:{name[1]}" if s.family == socket.AF_INET6 else f"{name[0]}:{name[1]}")
        return addrs

    def shutdown(self) -> None:
        # in-flight connections are left to die with the process
        if self.server:
            self.server.close()
