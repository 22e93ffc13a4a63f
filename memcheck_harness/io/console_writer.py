"""分類結果をテキストで出力するモジュール。"""

from typing import List, Optional, TextIO
import sys

from ..models.classification import ClassifiedReport, Leak
from ..models.report import ErrorEntry, Stack

_UNITS = ["kB", "MB", "GB", "TB", "PB", "EB"]


def format_bytes(size: int) -> str:
    """バイト数をSI単位の文字列にする（例: 15 B, 1.5 kB）。"""
    if size < 1000:
        return f"{size} B"
    value = float(size)
    for unit in _UNITS:
        value /= 1000
        if value < 1000 or unit == _UNITS[-1]:
            return f"{value:.1f} {unit}"
    return f"{size} B"


class ConsoleWriter:
    """ClassifiedReportを人が読める形式で書き出す。"""

    LABEL_WIDTH = 12

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stderr

    def write(self, report: ClassifiedReport) -> None:
        """全指摘とサマリーを書き出す。

        Args:
            report: 分類済みレポート
        """
        for line in self.format(report):
            print(line, file=self.stream)

    def format(self, report: ClassifiedReport) -> List[str]:
        lines: List[str] = []
        for leak in report.leaks:
            lines.extend(self._format_leak(leak))
        for error in report.errors:
            lines.extend(self._format_error(error))

        lines.append(self._line(
            "Summary",
            f"Leaked {format_bytes(report.total_leaked_bytes)} total "
            f"({report.other_error_count} other errors)"
        ))
        return lines

    def _format_leak(self, leak: Leak) -> List[str]:
        suffix = "" if leak.blocks == 1 else "s"
        lines = [self._line(
            "Error",
            f"leaked {format_bytes(leak.bytes)} in {leak.blocks} block{suffix}"
        )]
        lines.extend(self._format_stack(
            "stack trace (user code at the bottom)", leak.stack_trace
        ))
        return lines

    def _format_error(self, error: ErrorEntry) -> List[str]:
        lines = [self._line("Error", error.description or "unknown")]
        lines.extend(self._format_stack(
            "main stack trace (user code at the bottom)", error.primary_stack
        ))
        for info, stack in error.auxiliary_stacks():
            lines.extend(self._format_stack(info or "additional stack trace", stack))
        return lines

    def _format_stack(self, message: str, stack: Stack) -> List[str]:
        lines = [self._line("Info", message)]
        indent = " " * (self.LABEL_WIDTH + 1)
        lines.extend(f"{indent}at {frame}" for frame in stack)
        return lines

    def _line(self, label: str, message: str) -> str:
        return f"{label:>{self.LABEL_WIDTH}} {message}"
