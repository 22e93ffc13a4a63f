"""valgrind (memcheck) の実行とXMLレポートのデコードを行うモジュール。"""

from .errors import (
    DecodeError,
    MalformedOutputError,
    ProcessSignalError,
    SocketConnectionError,
    ToolInvocationFailedError,
    ToolNotInstalledError,
    ValgrindError,
)
from .supervisor import ValgrindSupervisor, execute
from .transport import accept_and_drain, open_listener
from .xml_decoder import decode, decode_partial, parse_hex64

__all__ = [
    "DecodeError",
    "MalformedOutputError",
    "ProcessSignalError",
    "SocketConnectionError",
    "ToolInvocationFailedError",
    "ToolNotInstalledError",
    "ValgrindError",
    "ValgrindSupervisor",
    "execute",
    "accept_and_drain",
    "open_listener",
    "decode",
    "decode_partial",
    "parse_hex64",
]
