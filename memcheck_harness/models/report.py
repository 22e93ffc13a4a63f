"""memcheckのXMLレポートをデコードした結果のモデル。"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple
from enum import Enum


class ProtocolVersion(Enum):
    """XMLレポートのプロトコルバージョン。

    バージョン1〜3は互換性がないため受け付けない。
    """
    VERSION_4 = "4"
    VERSION_5 = "5"
    VERSION_6 = "6"


class Tool(Enum):
    """レポートを出力したvalgrindツール。memcheckのみ対応。"""
    MEMCHECK = "memcheck"


class Kind(Enum):
    """エラー種別。値はXMLの<kind>要素の文字列そのもの。"""
    LEAK_DEFINITELY_LOST = "Leak_DefinitelyLost"
    LEAK_STILL_REACHABLE = "Leak_StillReachable"
    LEAK_INDIRECTLY_LOST = "Leak_IndirectlyLost"
    LEAK_POSSIBLY_LOST = "Leak_PossiblyLost"
    INVALID_FREE = "InvalidFree"
    MISMATCHED_FREE = "MismatchedFree"
    INVALID_READ = "InvalidRead"
    INVALID_WRITE = "InvalidWrite"
    INVALID_JUMP = "InvalidJump"
    OVERLAP = "Overlap"
    INVALID_MEM_POOL = "InvalidMemPool"
    UNINIT_CONDITION = "UninitCondition"
    UNINIT_VALUE = "UninitValue"
    SYSCALL_PARAM = "SyscallParam"
    FD_BAD_USE = "FdBadUse"
    CLIENT_CHECK = "ClientCheck"

    def is_leak(self) -> bool:
        """メモリリーク系の種別かどうかを確認する。

        Returns:
            リーク種別の場合True
        """
        return self in _LEAK_KINDS

    @property
    def label(self) -> str:
        """表示用の名前。"""
        return _KIND_LABELS[self]

    def __str__(self) -> str:
        return self.label


_LEAK_KINDS = frozenset({
    Kind.LEAK_DEFINITELY_LOST,
    Kind.LEAK_STILL_REACHABLE,
    Kind.LEAK_INDIRECTLY_LOST,
    Kind.LEAK_POSSIBLY_LOST,
})

_KIND_LABELS = {
    Kind.LEAK_DEFINITELY_LOST: "Leak (definitely lost)",
    Kind.LEAK_STILL_REACHABLE: "Leak (still reachable)",
    Kind.LEAK_INDIRECTLY_LOST: "Leak (indirectly lost)",
    Kind.LEAK_POSSIBLY_LOST: "Leak (possibly lost)",
    Kind.INVALID_FREE: "invalid free",
    Kind.MISMATCHED_FREE: "mismatched free",
    Kind.INVALID_READ: "invalid read",
    Kind.INVALID_WRITE: "invalid write",
    Kind.INVALID_JUMP: "invalid jump",
    Kind.OVERLAP: "overlap",
    Kind.INVALID_MEM_POOL: "invalid memory pool",
    Kind.UNINIT_CONDITION: "uninitialized condition",
    Kind.UNINIT_VALUE: "uninitialized value",
    Kind.SYSCALL_PARAM: "syscall parameter",
    Kind.FD_BAD_USE: "bad file descriptor use",
    Kind.CLIENT_CHECK: "client check",
}


@dataclass(frozen=True)
class Resources:
    """リークしたバイト数とブロック数。リーク以外の種別では0。"""
    bytes: int = 0
    blocks: int = 0


@dataclass(frozen=True)
class Frame:
    """スタックトレースの1フレーム。

    ストリップされたバイナリではip以外のすべてがNoneになり得る。
    """
    instruction_pointer: int
    object: Optional[str] = None
    directory: Optional[str] = None
    function: Optional[str] = None
    file: Optional[str] = None
    line: Optional[int] = None

    def __str__(self) -> str:
        text = self.function or "unknown"
        if self.file:
            location = self.file
            if self.line is not None:
                location += f":{self.line}"
            text += f" ({location})"
        return text


@dataclass(frozen=True)
class Stack:
    """スタックトレース（直近の呼び出しが先頭）。"""
    frames: Tuple[Frame, ...] = ()

    def __iter__(self) -> Iterator[Frame]:
        return iter(self.frames)

    def __len__(self) -> int:
        return len(self.frames)


@dataclass(frozen=True)
class ErrorEntry:
    """レポート中の1件の指摘。

    stack_tracesは少なくとも1つのスタックを持ち、先頭が主スタック、
    2番目以降が補助スタックとなる。
    """
    unique: int
    kind: Kind
    stack_traces: Tuple[Stack, ...]
    resources: Resources = field(default_factory=Resources)
    description: Optional[str] = None
    auxiliary_info: Tuple[str, ...] = ()

    @property
    def primary_stack(self) -> Stack:
        """主スタックトレース。"""
        return self.stack_traces[0]

    def auxiliary_stacks(self) -> Iterator[Tuple[Optional[str], Stack]]:
        """補助スタックを、同じ位置の補助説明と組にして返す。

        Yields:
            (補助説明またはNone, スタック) のタプル
        """
        for index, stack in enumerate(self.stack_traces[1:]):
            info = self.auxiliary_info[index] if index < len(self.auxiliary_info) else None
            yield info, stack

    def __str__(self) -> str:
        return f"[0x{self.unique:x}] {self.kind.label}: {self.description or 'unknown'}"


@dataclass(frozen=True)
class Report:
    """1回の解析実行分のデコード済みレポート。

    デコーダーのみが生成する。
    """
    protocol_version: ProtocolVersion
    tool: Tool
    errors: Tuple[ErrorEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.errors)
