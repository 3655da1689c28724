# utils/query_client.py
"""Satisfactory Lightweight Query API (UDP) client, state and version only."""
from __future__ import annotations

import asyncio
import logging
import random
import struct
from dataclasses import dataclass

from exceptions import ProbeError

log = logging.getLogger(__name__)

_MAGIC = 0xF6D5
_PROTOCOL_VERSION = 1
_POLL_SERVER_STATE = 0
_SERVER_STATE_RESPONSE = 1
_TERMINATOR = 0x01

_REQUEST = struct.Struct("<HBBQB")
_RESPONSE_HEADER = struct.Struct("<HBBQBIQB")

SERVER_STATES = {0: "Offline", 1: "Idle", 2: "Loading", 3: "Playing"}

@dataclass(frozen=True)
class ServerStatus:
    state: str
    version: int

    @property
    def online(self) -> bool:
        return self.state == "Playing"

class _QueryProtocol(asyncio.DatagramProtocol):
    def __init__(self, payload: bytes):
        self.payload = payload
        self.reply: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()

    def connection_made(self, transport):
        transport.sendto(self.payload)

    def datagram_received(self, data, addr):
        if not self.reply.done():
            self.reply.set_result(data)

    def error_received(self, exc):
        if not self.reply.done():
            self.reply.set_exception(exc)

def decode_status(data: bytes, cookie: int) -> ServerStatus:
    if len(data) < _RESPONSE_HEADER.size:
        raise ProbeError(f"short reply ({len(data)} bytes)")
    magic, msg_type, _version, echoed, state, netcl, _flags, _substates = _RESPONSE_HEADER.unpack_from(data)
    if magic != _MAGIC or msg_type != _SERVER_STATE_RESPONSE:
        raise ProbeError("unexpected reply")
    if echoed != cookie:
        raise ProbeError("cookie mismatch")
    return ServerStatus(state=SERVER_STATES.get(state, "Unknown"), version=netcl)

class ServerProbe:
    def __init__(self, host: str, port: int, timeout_ms: int):
        self.host = host
        self.port = port
        self.timeout = timeout_ms / 1000

    async def query(self) -> ServerStatus:
        cookie = random.getrandbits(64)
        payload = _REQUEST.pack(_MAGIC, _POLL_SERVER_STATE, _PROTOCOL_VERSION, cookie, _TERMINATOR)
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await loop.create_datagram_endpoint(
                lambda: _QueryProtocol(payload), remote_addr=(self.host, self.port)
            )
        except OSError as e:
            raise ProbeError(f"{self.host}:{self.port}: {e}") from e
        try:
            data = await asyncio.wait_for(protocol.reply, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProbeError(f"{self.host}:{self.port}: no reply in {self.timeout:.1f}s") from e
        except OSError as e:
            raise ProbeError(f"{self.host}:{self.port}: {e}") from e
        finally:
            transport.close()
        status = decode_status(data, cookie)
        log.debug("[probe] %s:%s -> %s (v%s)", self.host, self.port, status.state, status.version)
        return status
