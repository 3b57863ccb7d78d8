import logging
import struct
import time
from dataclasses import dataclass

from . import config
from .connection import ConnectionState
from .errors import ProtocolError
from .net import read_packet_header, write_packet

logger = logging.getLogger("MCQuery")


@dataclass(frozen=True)
class PingToken:
    """The payload sent with one ping and the moment the measurement began."""
    payload: bytes
    started: float

    @classmethod
    def now(cls):
        payload = struct.pack('>q', time.time_ns())
        return cls(payload, time.perf_counter())

    def elapsed_ms(self):
        return (time.perf_counter() - self.started) * 1000.0


def send_ping(conn):
    conn.require_state(ConnectionState.HANDSHAKEN)
    token = PingToken.now()
    write_packet(conn, config.PACKET_PING, token.payload)
    conn.state = ConnectionState.AWAITING_PONG
    return token


def receive_ping(conn, token):
    """Read the pong for ``token`` and return the round trip in milliseconds."""
    conn.require_state(ConnectionState.AWAITING_PONG)
    packet_length, id_size = read_packet_header(conn, config.PACKET_PING)
    payload_size = packet_length - id_size
    pong_bytes = conn.read_exact(max(config.PING_PAYLOAD_SIZE, payload_size))
    # 读完立刻停止计时，后面的校验不计入延迟
    elapsed = token.elapsed_ms()

    if payload_size != config.PING_PAYLOAD_SIZE:
        raise ProtocolError(f"Pong payload is {payload_size} bytes, expected {config.PING_PAYLOAD_SIZE}")
    if pong_bytes != token.payload:
        raise ProtocolError("Sent ping bytes did not match received pong bytes")

    conn.state = ConnectionState.HANDSHAKEN
    logger.debug(f"{conn.descriptor} 延迟 {elapsed:.2f} ms")
    return elapsed


def ping_once(conn):
    token = send_ping(conn)
    return receive_ping(conn, token)
