import logging
import sys

import yaml

from .errors import InvalidArgument

# --- Protocol ---
DEFAULT_PORT = 25565
DEFAULT_PROTOCOL_VERSION = -1 # -1: 让服务器按自己的默认版本回应
NEXT_STATE_STATUS = 1
NEXT_STATE_LOGIN = 2

PACKET_HANDSHAKE = 0x00
PACKET_STATUS = 0x00
PACKET_PING = 0x01

MAX_STATUS_LENGTH = 32767
PING_PAYLOAD_SIZE = 8

# --- Client ---
DEFAULT_TIMEOUT_MS = 5000

# Logging
LOG_FORMAT = '%(asctime)s] %(levelname)s: %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

_CONFIG_KEYS = ("host", "port", "protocol", "timeout_ms")


def setup_logging(level=logging.INFO):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return handler


def load_config(path):
    """
    读取 YAML 配置文件，返回补全默认值后的 dict:
    host (必填), port, protocol, timeout_ms
    """
    with open(path, 'r', encoding='utf-8') as f:
        doc = yaml.safe_load(f)

    if not isinstance(doc, dict):
        raise InvalidArgument(f"Config file {path} must contain a mapping")

    unknown = set(doc) - set(_CONFIG_KEYS)
    if unknown:
        raise InvalidArgument(f"Unknown config keys: {', '.join(sorted(unknown))}")
    if not doc.get('host'):
        raise InvalidArgument("Config is missing 'host'")

    return {
        'host': doc['host'],
        'port': doc.get('port', DEFAULT_PORT),
        'protocol': doc.get('protocol', DEFAULT_PROTOCOL_VERSION),
        'timeout_ms': doc.get('timeout_ms', DEFAULT_TIMEOUT_MS),
    }
