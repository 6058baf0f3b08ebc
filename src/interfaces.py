"""Core interfaces used by the proxy components."""

from abc import ABC, abstractmethod


class ILogger(ABC):
    @abstractmethod
    def service(self, message: str, color: int = 0, debug_only: bool = False) -> None:
        ...

    @abstractmethod
    def info(self, message: str) -> None:
        ...

    @abstractmethod
    def error(self, message: str) -> None:
        ...

    @abstractmethod
    def debug(self, message: str) -> None:
        ...


class IRoutingPolicy(ABC):
    @abstractmethod
    def decide(self, hostname: str):
        ...


class IConnectionHandler(ABC):
    @abstractmethod
    async def handle_connection(self, reader, writer) -> None:
        ...
