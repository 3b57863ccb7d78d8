import logging
import socket
import struct
import time
from enum import IntEnum

from . import config
from . import utils
from .errors import ConnectTimeout, InvalidArgument, ProtocolError
from .net import write_packet

logger = logging.getLogger("MCQuery")


class ConnectionState(IntEnum):
    """Client-side view of where a connection is in the SLP exchange."""
    CONNECTING = 0
    HANDSHAKEN = 1
    AWAITING_STATUS_RESPONSE = 2
    AWAITING_PONG = 3
    CLOSED = 4


class Connection:
    """A TCP stream bound to one server for the duration of one operation.

    Use it as a context manager; the socket is closed on every exit path.
    """

    def __init__(self, sock, descriptor):
        self.sock = sock
        self.descriptor = descriptor
        self.state = ConnectionState.CONNECTING
        # Buffer for socket receiving
        self.recv_buffer = bytearray()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        self.recv_buffer.clear()
        self.sock.close()
        logger.debug(f"已关闭与 {self.descriptor} 的连接")

    def require_state(self, *states):
        if self.state not in states:
            expected = " or ".join(s.name for s in states)
            raise ProtocolError(f"Connection is {self.state.name}, expected {expected}")

    def sendall(self, data):
        self.sock.sendall(data)

    def _ensure_buffer(self, min_length):
        while len(self.recv_buffer) < min_length:
            chunk = self.sock.recv(4096)
            if not chunk:
                raise ConnectionError(
                    f"Connection closed by {self.descriptor} "
                    f"({len(self.recv_buffer)} of {min_length} bytes received)"
                )
            self.recv_buffer.extend(chunk)

    def read_exact(self, count):
        self._ensure_buffer(count)
        data = bytes(self.recv_buffer[:count])
        del self.recv_buffer[:count]
        return data

    def read_byte(self):
        self._ensure_buffer(1)
        byte = self.recv_buffer[0]
        del self.recv_buffer[0]
        return byte

    def read_varint(self):
        return utils.read_varint(self.read_byte)


def connect(descriptor, timeout):
    """Open a TCP connection to ``descriptor`` within ``timeout`` seconds.

    The bound is one deadline shared by every address the host resolves to.
    Any failure to establish the connection in time (including refused or
    unreachable hosts) raises ``ConnectTimeout``. After connecting, ``timeout``
    stays on the socket as a deadline for each later send and receive, so a
    silent server raises ``TimeoutError`` instead of blocking forever.
    """
    logger.debug(f"正在连接到 {descriptor} (timeout={timeout}s)")
    deadline = time.monotonic() + timeout
    try:
        addresses = socket.getaddrinfo(descriptor.host, descriptor.port, 0, socket.SOCK_STREAM)
    except OSError as e:
        raise ConnectTimeout(f"Connection to {descriptor} failed: {e}") from e

    last_error = None
    for family, socktype, proto, _, address in addresses:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        sock = socket.socket(family, socktype, proto)
        sock.settimeout(remaining)
        try:
            sock.connect(address)
        except OSError as e:
            sock.close()
            last_error = e
            continue
        sock.settimeout(timeout)
        return Connection(sock, descriptor)

    reason = last_error or "deadline exceeded"
    raise ConnectTimeout(f"Connection to {descriptor} timed out: {reason}") from last_error


def build_handshake_payload(descriptor, next_state):
    if next_state not in (config.NEXT_STATE_STATUS, config.NEXT_STATE_LOGIN):
        raise InvalidArgument(f"Next state must be 1 (status) or 2 (login), got {next_state!r}")
    address = descriptor.address_bytes
    # 地址长度是单个原始字节，不是 VarInt
    return (
        utils.pack_varint(descriptor.protocol)
        + struct.pack('>B', len(address))
        + address
        + struct.pack('>H', descriptor.port)
        + utils.pack_varint(next_state)
    )


def handshake(conn, next_state=config.NEXT_STATE_STATUS):
    conn.require_state(ConnectionState.CONNECTING)
    payload = build_handshake_payload(conn.descriptor, next_state)
    write_packet(conn, config.PACKET_HANDSHAKE, payload)
    conn.state = ConnectionState.HANDSHAKEN
    logger.debug(f"已向 {conn.descriptor} 发送握手包 (next_state={next_state})")


def open_connection(descriptor, timeout, next_state=config.NEXT_STATE_STATUS):
    conn = connect(descriptor, timeout)
    try:
        handshake(conn, next_state)
    except BaseException:
        conn.close()
        raise
    return conn
