from dataclasses import dataclass

from . import config
from .errors import InvalidArgument


@dataclass(frozen=True)
class ServerDescriptor:
    """Address of a Minecraft server plus the protocol version to announce."""
    host: str
    port: int = config.DEFAULT_PORT
    protocol: int = config.DEFAULT_PROTOCOL_VERSION

    def __post_init__(self):
        if not isinstance(self.host, str) or not self.host:
            raise InvalidArgument("Host must be a non-empty string")
        try:
            encoded = self.host.encode('ascii')
        except UnicodeEncodeError:
            raise InvalidArgument(f"Host must be ASCII: {self.host!r}") from None
        # 握手包里地址长度只占一个字节
        if len(encoded) > 0xFF:
            raise InvalidArgument("Host is longer than 255 bytes")

        if not _is_int(self.port) or not 0 <= self.port <= 0xFFFF:
            raise InvalidArgument(f"Port is out of range (must be between 0 and 65535): {self.port!r}")
        if not _is_int(self.protocol) or self.protocol < -1:
            raise InvalidArgument(f"Protocol version cannot be less than -1: {self.protocol!r}")

    @property
    def address_bytes(self):
        return self.host.encode('ascii')

    def __str__(self):
        return f"{self.host}:{self.port}"


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)
