import logging
from dataclasses import dataclass
from typing import Any, Union

from . import config
from .connection import open_connection
from .errors import InvalidArgument, ProtocolError
from .ping import ping_once
from .server import ServerDescriptor
from .status import query_status

# 这些异常视为一次尝试失败；其他异常（如 KeyboardInterrupt）直接向上抛
ATTEMPT_ERRORS = (OSError, ProtocolError)


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Retry:
    reason: BaseException


@dataclass(frozen=True)
class Err:
    error: BaseException


Outcome = Union[Ok, Retry, Err]


class MCServer:
    """
    Minecraft Server List Ping 客户端

    每次 status() / ping() 都会新建连接、握手、完成交换后关闭连接，
    实例本身只保存服务器地址和默认超时，可在多个线程间共享。
    """

    def __init__(self, host, port=config.DEFAULT_PORT, protocol=config.DEFAULT_PROTOCOL_VERSION,
                 timeout_ms=config.DEFAULT_TIMEOUT_MS):
        self.descriptor = ServerDescriptor(host, port, protocol)
        self.timeout_ms = _check_timeout(timeout_ms)
        self.logger = logging.getLogger(f"MCServer_{self.descriptor}")

    @classmethod
    def from_config(cls, path):
        settings = config.load_config(path)
        return cls(settings['host'], settings['port'], settings['protocol'], settings['timeout_ms'])

    @property
    def host(self):
        return self.descriptor.host

    @property
    def port(self):
        return self.descriptor.port

    @property
    def protocol(self):
        return self.descriptor.protocol

    def log(self, message, level=logging.INFO):
        self.logger.log(level, message)

    def status(self, timeout_ms=None):
        """Query the server and return its status JSON as received."""
        timeout = self._timeout_seconds(timeout_ms)
        with open_connection(self.descriptor, timeout) as conn:
            return query_status(conn)

    def ping(self, timeout_ms=None):
        """
        测量往返延迟（毫秒）

        先尝试直接 ping；部分服务器要求先请求状态，失败后换新连接
        按 状态请求 -> ping 的顺序重试一次。
        """
        timeout = self._timeout_seconds(timeout_ms)

        outcome = self._bare_ping(timeout)
        if isinstance(outcome, Retry):
            self.log(f"直接 ping 失败 ({outcome.reason!r})，先请求状态后重试", level=logging.WARNING)
            outcome = self._status_then_ping(timeout)

        if isinstance(outcome, Err):
            self.log(f"ping 失败: {outcome.error!r}", level=logging.ERROR)
            raise outcome.error
        return outcome.value

    def _bare_ping(self, timeout) -> Outcome:
        try:
            with open_connection(self.descriptor, timeout) as conn:
                return Ok(ping_once(conn))
        except ATTEMPT_ERRORS as e:
            return Retry(e)

    def _status_then_ping(self, timeout) -> Outcome:
        try:
            with open_connection(self.descriptor, timeout) as conn:
                query_status(conn)
                return Ok(ping_once(conn))
        except ATTEMPT_ERRORS as e:
            return Err(e)

    def _timeout_seconds(self, timeout_ms):
        if timeout_ms is None:
            timeout_ms = self.timeout_ms
        return _check_timeout(timeout_ms) / 1000.0

    def __repr__(self):
        return f"MCServer({self.host!r}, {self.port}, protocol={self.protocol})"


def _check_timeout(timeout_ms):
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)) or timeout_ms <= 0:
        raise InvalidArgument(f"Timeout must be a positive number of milliseconds: {timeout_ms!r}")
    return timeout_ms
