import socket

import pytest

from fake_server import FakeServer
from mcquery.connection import Connection
from mcquery.server import ServerDescriptor


@pytest.fixture
def fake_server():
    servers = []

    def start(handler):
        server = FakeServer(handler).start()
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.stop()


@pytest.fixture
def socket_pair():
    """A Connection plus the peer socket the test uses to script replies."""
    client_sock, peer = socket.socketpair()
    client_sock.settimeout(2)
    peer.settimeout(2)
    conn = Connection(client_sock, ServerDescriptor("localhost", 25565, 754))
    yield conn, peer
    conn.close()
    peer.close()


@pytest.fixture
def free_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
