from typing import Tuple

from . import utils
from .errors import ProtocolError


def build_packet(packet_id: int, payload: bytes = b"") -> bytes:
    """Frame a packet: [VarInt length][VarInt packet id][payload].

    ``length`` covers the encoded packet id plus the payload.
    """
    packet_data = utils.pack_varint(packet_id) + bytes(payload)
    return utils.pack_varint(len(packet_data)) + packet_data


def write_packet(conn, packet_id: int, payload: bytes = b"") -> None:
    conn.sendall(build_packet(packet_id, payload))


def read_packet_header(conn, expected_id: int) -> Tuple[int, int]:
    """Read the length and packet id of the next packet on ``conn``.

    Returns ``(length, id_size)`` where ``id_size`` is the number of bytes the
    packet id VarInt occupied, so ``length - id_size`` is the payload size.
    """
    length, _ = conn.read_varint()
    packet_id, id_size = conn.read_varint()
    if packet_id != expected_id:
        raise ProtocolError(f"Expected packet ID {expected_id}, got {packet_id}")
    return length, id_size
