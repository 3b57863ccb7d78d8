class InvalidArgument(ValueError):
    """构造参数非法（端口、协议版本、地址等）"""


class ConnectTimeout(TimeoutError):
    """在超时时间内未能建立 TCP 连接"""


class ProtocolError(Exception):
    """服务器返回的数据不符合 SLP 协议"""


class FramingError(ProtocolError):
    """VarInt 过长或被截断"""
