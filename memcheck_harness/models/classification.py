"""分類結果モデル。"""

from dataclasses import dataclass
from typing import Tuple

from .report import ErrorEntry, Kind, Stack


@dataclass(frozen=True)
class Leak:
    """リーク種別の指摘から導出したビュー。"""
    bytes: int
    blocks: int
    kind: Kind
    stack_trace: Stack

    @classmethod
    def from_error(cls, error: ErrorEntry) -> "Leak":
        """リーク種別のErrorEntryからLeakを生成する。

        Args:
            error: リーク種別の指摘

        Returns:
            Leakインスタンス
        """
        return cls(
            bytes=error.resources.bytes,
            blocks=error.resources.blocks,
            kind=error.kind,
            stack_trace=error.primary_stack,
        )

    def __str__(self) -> str:
        suffix = "" if self.blocks == 1 else "s"
        return f"{self.kind.label}: {self.bytes} bytes in {self.blocks} block{suffix}"


@dataclass(frozen=True)
class ClassifiedReport:
    """リークとそれ以外のエラーに分類したレポート。"""
    leaks: Tuple[Leak, ...] = ()
    errors: Tuple[ErrorEntry, ...] = ()
    total_leaked_bytes: int = 0

    @property
    def total_leaked_blocks(self) -> int:
        return sum(leak.blocks for leak in self.leaks)

    @property
    def other_error_count(self) -> int:
        return len(self.errors)

    @property
    def is_clean(self) -> bool:
        """リークもエラーも無い場合True。"""
        return not self.leaks and not self.errors
