"""SNI hostname extraction from the first bytes of a TLS connection."""

import struct
from typing import Optional

SNI_MARKER = b"\x00\x00\x00\x00\x00"

TLS_HANDSHAKE = 0x16
HANDSHAKE_CLIENT_HELLO = 0x01
EXT_SERVER_NAME = 0x0000
NAME_TYPE_HOST_NAME = 0x00


def _decode(raw: bytes) -> Optional[str]:
    if not raw:
        return None
    return raw.decode("utf-8", "replace")


def get_sni_server_name(buf: bytes) -> Optional[str]:
    """Find the hostname by anchoring on a run of five zero bytes.

    In a ClientHello carrying a single host_name entry and no padding in
    front of it, the run ends right before the one-byte hostname length.
    The first marker whose length fits inside the buffer decides the result;
    an empty hostname there means "not found".
    """
    n = len(buf)
    pos = buf.find(SNI_MARKER)
    while pos != -1:
        offset = pos + 5
        if offset < n:
            length = buf[offset]
            if offset + length < n:
                return _decode(buf[offset + 1:offset + 1 + length])
        pos = buf.find(SNI_MARKER, pos + 1)
    return None


class ClientHelloParser:
    """Walks the TLS record down to the server_name extension."""

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def _read(self, n: int) -> bytes:
        end = self.pos + n
        if end > len(self.data):
            raise ValueError("truncated ClientHello")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def _u8(self) -> int:
        return self._read(1)[0]

    def _u16(self) -> int:
        return struct.unpack("!H", self._read(2))[0]

    def _u24(self) -> int:
        hi, lo = struct.unpack("!BH", self._read(3))
        return (hi << 16) | lo

    def server_name(self) -> Optional[str]:
        if self._u8() != TLS_HANDSHAKE:
            return None
        self._read(2)  # record version
        self._u16()  # record length, may span several reads
        if self._u8() != HANDSHAKE_CLIENT_HELLO:
            return None
        self._u24()
        self._read(2 + 32)  # client version, random
        self._read(self._u8())  # session id
        self._read(self._u16())  # cipher suites
        self._read(self._u8())  # compression methods

        ext_end = self.pos + self._u16()
        while self.pos + 4 <= min(ext_end, len(self.data)):
            ext_type = self._u16()
            ext_data = self._read(self._u16())
            if ext_type == EXT_SERVER_NAME:
                return self._host_name(ext_data)
        return None

    @staticmethod
    def _host_name(ext_data: bytes) -> Optional[str]:
        if len(ext_data) < 2:
            return None
        list_end = min(2 + struct.unpack("!H", ext_data[:2])[0], len(ext_data))
        pos = 2
        while pos + 3 <= list_end:
            name_type = ext_data[pos]
            name_len = struct.unpack("!H", ext_data[pos + 1:pos + 3])[0]
            pos += 3
            if pos + name_len > list_end:
                return None
            if name_type == NAME_TYPE_HOST_NAME:
                return _decode(ext_data[pos:pos + name_len])
            pos += name_len
        return None


def parse_client_hello_sni(buf: bytes) -> Optional[str]:
    """Structured alternative to the marker scan; accepts reordered extensions."""
    try:
        return ClientHelloParser(buf).server_name()
    except ValueError:
        return None


EXTRACTORS = {
    "marker": get_sni_server_name,
    "structured": parse_client_hello_sni,
}
