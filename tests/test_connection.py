import socket
import time
import types

import pytest

from fake_server import recv_packet, hang_up_handler
from mcquery import connection
from mcquery.connection import ConnectionState
from mcquery.errors import ConnectTimeout, InvalidArgument, ProtocolError
from mcquery.server import ServerDescriptor

LOCALHOST_HANDSHAKE = (
    b"\xf2\x05"          # protocol 754
    b"\x09"              # raw address length
    b"localhost"
    b"\x63\xdd"          # 25565, big-endian
    b"\x01"              # next state: status
)


def test_handshake_payload_is_byte_exact():
    descriptor = ServerDescriptor("localhost", 25565, 754)
    assert connection.build_handshake_payload(descriptor, 1) == LOCALHOST_HANDSHAKE


def test_handshake_with_unspecified_protocol():
    payload = connection.build_handshake_payload(ServerDescriptor("localhost", 25565), 2)
    assert payload[:5] == b"\xff\xff\xff\xff\x0f"
    assert payload[-1:] == b"\x02"


def test_address_length_is_a_raw_byte_not_a_varint():
    host = "a" * 200
    payload = connection.build_handshake_payload(ServerDescriptor(host, 1, 0), 1)
    # protocol 0 -> 00, then a single 0xc8 length byte
    assert payload[:2] == b"\x00\xc8"
    assert payload[2:202] == host.encode('ascii')
    assert payload[202:] == b"\x00\x01\x01"


@pytest.mark.parametrize("next_state", [0, 3, -1])
def test_handshake_rejects_unknown_next_state(next_state):
    with pytest.raises(InvalidArgument):
        connection.build_handshake_payload(ServerDescriptor("localhost"), next_state)


def test_handshake_writes_framed_packet(socket_pair):
    conn, peer = socket_pair
    connection.handshake(conn, 1)
    assert conn.state == ConnectionState.HANDSHAKEN
    assert peer.recv(64) == bytes([len(LOCALHOST_HANDSHAKE) + 1, 0x00]) + LOCALHOST_HANDSHAKE


def test_handshake_only_once(socket_pair):
    conn, _ = socket_pair
    connection.handshake(conn)
    with pytest.raises(ProtocolError):
        connection.handshake(conn)


def test_connect_to_closed_port_times_out_quickly(free_port):
    descriptor = ServerDescriptor("127.0.0.1", free_port)
    started = time.monotonic()
    with pytest.raises(ConnectTimeout):
        connection.connect(descriptor, 0.2)
    assert time.monotonic() - started < 2.0


def test_connect_timeout_is_a_timeout_error(free_port):
    with pytest.raises(TimeoutError):
        connection.connect(ServerDescriptor("127.0.0.1", free_port), 0.2)


def test_open_connection_sends_handshake(fake_server):
    received = []

    def handler(sock, index):
        received.append(recv_packet(sock))

    server = fake_server(handler)
    with connection.open_connection(ServerDescriptor("127.0.0.1", server.port, 754), 2.0) as conn:
        assert conn.state == ConnectionState.HANDSHAKEN
    assert conn.state == ConnectionState.CLOSED

    server.stop()
    packet_id, payload = received[0]
    assert packet_id == 0x00
    assert payload == b"\xf2\x05\x09127.0.0.1" + server.port.to_bytes(2, 'big') + b"\x01"


def test_read_after_peer_closes_raises_connection_error(fake_server):
    server = fake_server(hang_up_handler)
    with connection.open_connection(ServerDescriptor("127.0.0.1", server.port), 2.0) as conn:
        with pytest.raises(ConnectionError):
            conn.read_exact(1)


def test_close_is_idempotent(socket_pair):
    conn, _ = socket_pair
    conn.close()
    conn.close()
    assert conn.state == ConnectionState.CLOSED


class FakeClock:
    def __init__(self, step):
        self.now = 0.0
        self.step = step

    def monotonic(self):
        value = self.now
        self.now += self.step
        return value


class RefusingSocket:
    created = []

    def __init__(self, family, socktype, proto):
        self.timeouts = []
        self.closed = False
        RefusingSocket.created.append(self)

    def settimeout(self, value):
        self.timeouts.append(value)

    def connect(self, address):
        raise ConnectionRefusedError(address)

    def close(self):
        self.closed = True


def test_connect_shares_one_deadline_across_addresses(monkeypatch):
    addresses = [
        (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("127.0.0.1", 25565)),
        (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("127.0.0.2", 25565)),
        (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("127.0.0.3", 25565)),
    ]
    RefusingSocket.created = []
    fake_socket = types.SimpleNamespace(
        getaddrinfo=lambda *args: addresses,
        socket=RefusingSocket,
        SOCK_STREAM=socket.SOCK_STREAM,
    )
    # each clock read advances 0.15s: the deadline is 0.2s, so only the
    # first address gets an attempt, with the 0.05s left
    monkeypatch.setattr(connection, "socket", fake_socket)
    monkeypatch.setattr(connection, "time", FakeClock(0.15))

    with pytest.raises(ConnectTimeout) as excinfo:
        connection.connect(ServerDescriptor("mc.example.org"), 0.2)

    assert len(RefusingSocket.created) == 1
    attempt = RefusingSocket.created[0]
    assert attempt.closed
    assert attempt.timeouts == [pytest.approx(0.05)]
    assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)


def test_connect_resolution_failure(monkeypatch):
    def getaddrinfo(*args):
        raise socket.gaierror("name not known")

    monkeypatch.setattr(connection, "socket", types.SimpleNamespace(
        getaddrinfo=getaddrinfo, SOCK_STREAM=socket.SOCK_STREAM,
    ))
    with pytest.raises(ConnectTimeout):
        connection.connect(ServerDescriptor("nowhere.invalid"), 0.2)


def test_connected_socket_keeps_timeout_as_io_deadline(fake_server):
    server = fake_server(hang_up_handler)
    with connection.connect(ServerDescriptor("127.0.0.1", server.port), 0.75) as conn:
        assert conn.sock.gettimeout() == 0.75
