"""Per-connection handling: SNI sniffing, routing and the two-way relay."""

import asyncio
from typing import List, Tuple

from constants import BUF_SIZE, DRAIN_HWM, SNI_BUF_SIZE
from interfaces import IConnectionHandler
from rules import RuleEngine
from sni import EXTRACTORS


def format_addr(peer) -> str:
    if not peer:
        return "unknown"
    host, port = peer[0], peer[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class Deadline:
    """Absolute point in time after which every I/O step fails with a timeout.

    It is set once and never pushed back, so a session is capped in wall-clock
    time no matter how much traffic flows.
    """

    __slots__ = ("expires_at",)

    def __init__(self, timeout: float):
        self.expires_at = asyncio.get_running_loop().time() + timeout

    def remaining(self) -> float:
        return max(0.0, self.expires_at - asyncio.get_running_loop().time())

    async def run(self, aw):
        return await asyncio.wait_for(aw, timeout=self.remaining())


class ConnectionHandler(IConnectionHandler):
    def __init__(self, config, logger):
        self.config = config
        self.logger = logger
        self.policy = RuleEngine(config.rules, config.allow_all_hosts, config.forward_port)
        self.extract_sni = EXTRACTORS[config.sni_parser]

    async def handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        deadline = Deadline(self.config.session_timeout)
        raddr = format_addr(writer.get_extra_info("peername"))
        self.logger.info(f"connection from: {raddr}")
        try:
            await self._serve(reader, writer, raddr, deadline)
        except Exception as e:
            self.logger.error(f"unexpected error on connection from {raddr}: {e!r}")
        finally:
            self._close(writer)

    async def _serve(self, reader, writer, raddr: str, deadline: Deadline) -> None:
        try:
            probe = await deadline.run(reader.read(SNI_BUF_SIZE))
        except (OSError, asyncio.TimeoutError) as e:
            self.logger.error(f"error reading request from {raddr}: {e!r}")
            return

        server_name = self.extract_sni(probe)
        if not server_name:
            self.logger.debug("SNI server name not found, ignoring...")
            return

        target = self.policy.decide(server_name)
        if target is None:
            self.logger.debug(f"{server_name} matches no rule, dropping {raddr}")
            return

        host, port = target
        self.logger.info(f"forward target: {host}:{port}")
        await self.forward(reader, writer, probe, host, port, raddr, deadline)

    async def forward(self, reader, writer, first_payload: bytes, host: str, port: int, raddr: str, deadline: Deadline) -> None:
        dst_addr = f"{host}:{port}"
        try:
            remote_reader, remote_writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, limit=BUF_SIZE),
                timeout=self.config.dial_timeout,
            )
        except (OSError, UnicodeError, asyncio.TimeoutError) as e:
            self.logger.error(f"error connecting to target {dst_addr}: {e!r}")
            return

        remote_deadline = Deadline(self.config.session_timeout)
        try:
            remote_writer.write(first_payload)
            await remote_deadline.run(remote_writer.drain())
        except (OSError, asyncio.TimeoutError) as e:
            self.logger.error(f"error sending initial data to target {dst_addr}: {e!r}")
            self._close(remote_writer)
            return

        await self._run_pipes(
            (reader, writer, raddr, deadline),
            (remote_reader, remote_writer, dst_addr, remote_deadline),
        )

    async def _run_pipes(self, client, remote) -> None:
        client_reader, client_writer, raddr, deadline = client
        remote_reader, remote_writer, dst_addr, remote_deadline = remote
        errors: List[Tuple[str, BaseException]] = []

        pipes = (
            asyncio.create_task(self._pipe(client_reader, remote_writer, deadline, remote_deadline, f"source {raddr} to target {dst_addr}", errors)),
            asyncio.create_task(self._pipe(remote_reader, client_writer, remote_deadline, deadline, f"target {dst_addr} to source {raddr}", errors)),
        )
        try:
            await asyncio.wait(pipes, return_when=asyncio.FIRST_COMPLETED)
            if errors:
                label, exc = errors[0]
                self.logger.error(f"error copying data from {label}: {exc!r}")
        finally:
            # either side finishing ends the session for both
            for w in (client_writer, remote_writer):
                self._close(w)
            for task in pipes:
                task.cancel()
            await asyncio.gather(*pipes, return_exceptions=True)

    async def _pipe(self, reader, writer, read_deadline: Deadline, write_deadline: Deadline, label: str, errors: list) -> None:
        transport = writer.transport
        read = reader.read
        write = writer.write
        try:
            while True:
                data = await read_deadline.run(read(BUF_SIZE))
                if not data:
                    break
                write(data)
                if transport.get_write_buffer_size() > DRAIN_HWM:
                    await write_deadline.run(writer.drain())
            await write_deadline.run(writer.drain())
        except (OSError, asyncio.TimeoutError) as e:
            errors.append((label, e))

    @staticmethod
    def _close(writer: asyncio.StreamWriter) -> None:
        try:
            writer.close()
        except (OSError, RuntimeError):
            pass
