"""入出力モジュール。"""

from .console_writer import ConsoleWriter, format_bytes
from .excel_writer import ExcelWriter
from .suppressions import SuppressionBundle, SuppressionLoader

__all__ = [
    "ConsoleWriter",
    "format_bytes",
    "ExcelWriter",
    "SuppressionBundle",
    "SuppressionLoader",
]
