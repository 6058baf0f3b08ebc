"""Proxy configuration and file loader."""

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Tuple

import yaml

from constants import DEFAULT_LISTEN_ADDR, FORWARD_PORT, SESSION_TIMEOUT
from json_utils import json_loads
from sni import EXTRACTORS


class ConfigError(Exception):
    pass


def split_listen_addr(addr: str) -> Tuple[Optional[str], int]:
    """Split ``host:port`` (``[v6]:port`` and ``:port`` allowed) into parts."""
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ConfigError(f"listen_addr must be host:port, got {addr!r}")
    host = host.strip("[]") or None
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigError(f"invalid port in listen_addr {addr!r}") from None
    if not 0 <= port_num <= 65535:
        raise ConfigError(f"port out of range in listen_addr {addr!r}")
    return host, port_num


@dataclass(frozen=True)
class ProxyConfig:
    listen_addr: str = DEFAULT_LISTEN_ADDR
    rules: Tuple[str, ...] = ()
    allow_all_hosts: bool = False
    enable_socks5: bool = False
    socks_addr: str = ""
    forward_port: int = FORWARD_PORT
    session_timeout: float = SESSION_TIMEOUT
    connect_timeout: Optional[float] = None
    sni_parser: str = "marker"
    log_file: Optional[str] = None
    debug: bool = False
    quiet: bool = False

    @property
    def host(self) -> Optional[str]:
        return split_listen_addr(self.listen_addr)[0]

    @property
    def port(self) -> int:
        return split_listen_addr(self.listen_addr)[1]

    @property
    def dial_timeout(self) -> float:
        return self.connect_timeout or self.session_timeout

    def validate(self) -> "ProxyConfig":
        if not self.rules and not self.allow_all_hosts:
            raise ConfigError("rules must not be empty unless allow_all_hosts is true")
        split_listen_addr(self.listen_addr)
        if self.sni_parser not in EXTRACTORS:
            raise ConfigError(f"unknown sni_parser {self.sni_parser!r}, expected one of {sorted(EXTRACTORS)}")
        if self.session_timeout <= 0:
            raise ConfigError("session_timeout must be positive")
        return self


def _flag(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")
    return value


class ConfigLoader:
    @staticmethod
    def from_mapping(data: Optional[Mapping[str, Any]]) -> ProxyConfig:
        data = data or {}
        if not isinstance(data, Mapping):
            raise ConfigError("configuration root must be a mapping")
        rules = data.get("rules") or []
        if isinstance(rules, str) or not isinstance(rules, (list, tuple)):
            raise ConfigError("rules must be a list of hostname fragments")
        try:
            config = ProxyConfig(
                listen_addr=str(data.get("listen_addr") or DEFAULT_LISTEN_ADDR),
                rules=tuple(str(rule) for rule in rules),
                allow_all_hosts=_flag(data, "allow_all_hosts"),
                enable_socks5=_flag(data, "enable_socks5"),
                socks_addr=str(data.get("socks_addr") or ""),
                forward_port=int(data.get("forward_port", FORWARD_PORT)),
                session_timeout=float(data.get("session_timeout", SESSION_TIMEOUT)),
                connect_timeout=float(data["connect_timeout"]) if data.get("connect_timeout") else None,
                sni_parser=str(data.get("sni_parser", "marker")),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid value in configuration: {e}") from e
        return config

    @staticmethod
    def load_from_file(path: str) -> ProxyConfig:
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise ConfigError(f"failed to read config file: {e}") from e
        try:
            if os.path.splitext(path)[1].lower() == ".json":
                data = json_loads(raw)
            else:
                data = yaml.safe_load(raw)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"failed to parse config file: {e}") from e
        return ConfigLoader.from_mapping(data)

    @staticmethod
    def apply_args(config: ProxyConfig, args) -> ProxyConfig:
        return replace(
            config,
            log_file=args.log_file or config.log_file,
            debug=args.debug or config.debug,
            quiet=args.quiet or config.quiet,
        )
