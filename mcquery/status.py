import codecs
import logging

from . import config
from .connection import ConnectionState
from .errors import ProtocolError
from .net import write_packet

logger = logging.getLogger("MCQuery")

# 包ID + 响应长度 + 最短的 JSON 文档 ("{}" 或 "[]")
MIN_STATUS_PACKET_LENGTH = 4
DISCARD_CHUNK_SIZE = 4096


def send_status_request(conn):
    conn.require_state(ConnectionState.HANDSHAKEN)
    write_packet(conn, config.PACKET_STATUS)
    conn.state = ConnectionState.AWAITING_STATUS_RESPONSE


def receive_status_response(conn):
    """
    读取状态响应，返回服务器原样发送的 JSON 文本（不解析）
    """
    conn.require_state(ConnectionState.AWAITING_STATUS_RESPONSE)

    packet_length, _ = conn.read_varint()
    if packet_length < MIN_STATUS_PACKET_LENGTH:
        raise ProtocolError(f"Packet length is of unusual size ({packet_length} bytes)")

    packet_id, id_size = conn.read_varint()
    if packet_id != config.PACKET_STATUS:
        raise ProtocolError(f"Expected packet ID {config.PACKET_STATUS}, got {packet_id}")

    response_length, length_size = conn.read_varint()
    if response_length < 0:
        raise ProtocolError("Response length size was less than 0")
    if packet_length != id_size + length_size + response_length:
        raise ProtocolError(
            f"Packet length {packet_length} does not cover a {response_length} byte response"
        )

    count = min(response_length, config.MAX_STATUS_LENGTH)
    response_bytes = conn.read_exact(count)
    capped = count < response_length
    if capped:
        logger.warning(f"状态响应过长 ({response_length} 字节)，只保留前 {count} 字节")
        # 丢弃剩余部分，后面还要在同一连接上读 pong
        remaining = response_length - count
        while remaining > 0:
            remaining -= len(conn.read_exact(min(remaining, DISCARD_CHUNK_SIZE)))

    try:
        if capped:
            # 截断处可能落在多字节字符中间，只解码完整的部分
            json_text = codecs.getincrementaldecoder('utf-8')().decode(response_bytes, final=False)
        else:
            json_text = response_bytes.decode('utf-8')
    except UnicodeDecodeError as e:
        raise ProtocolError(f"Status response is not valid UTF-8: {e}") from e

    conn.state = ConnectionState.HANDSHAKEN
    logger.debug(f"收到 {conn.descriptor} 的状态响应: {len(response_bytes)} 字节")
    return json_text


def query_status(conn):
    send_status_request(conn)
    return receive_status_response(conn)
