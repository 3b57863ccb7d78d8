from .errors import FramingError

VARINT_MAX_BYTES = 5

_INT32_MIN = -(1 << 31)
_UINT32_MAX = (1 << 32) - 1


def pack_varint(value):
    if not _INT32_MIN <= value <= _UINT32_MAX:
        raise ValueError(f"VarInt out of 32-bit range: {value}")
    # 负数按 32 位补码编码
    value &= _UINT32_MAX
    data = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value != 0:
            byte |= 0x80
        data.append(byte)
        if value == 0:
            break
    return bytes(data)


def _to_signed(result):
    if result & (1 << 31):
        result -= 1 << 32
    return result


def read_varint(read_byte):
    """Decode a VarInt by pulling single bytes from ``read_byte()``.

    Returns ``(value, bytes_consumed)``. The value is interpreted as a signed
    32-bit integer.
    """
    result = 0
    for num_read in range(VARINT_MAX_BYTES):
        byte = read_byte()
        result |= (byte & 0x7F) << (7 * num_read)
        if not (byte & 0x80):
            return _to_signed(result & _UINT32_MAX), num_read + 1
    raise FramingError(f"VarInt longer than {VARINT_MAX_BYTES} bytes")


def read_varint_from_bytes(data):
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("read_varint_from_bytes requires a bytes-like object")
    data = bytes(data)
    position = 0

    def read_byte():
        nonlocal position
        if position >= len(data):
            raise FramingError("Truncated VarInt")
        byte = data[position]
        position += 1
        return byte

    return read_varint(read_byte)
