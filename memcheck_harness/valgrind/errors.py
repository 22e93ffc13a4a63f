"""valgrind実行まわりのエラー定義。"""

from typing import Optional

from ..models.report import Report


class DecodeError(ValueError):
    """XMLレポートのデコードに失敗した。"""
    pass


class ValgrindError(Exception):
    """valgrind実行に関するエラーの基底クラス。"""
    pass


class ToolNotInstalledError(ValgrindError):
    """valgrindの実行ファイルが見つからない、または実行できない。

    ユーザー環境の問題。
    """

    def __init__(self, executable: str, reason: Optional[str] = None):
        self.executable = executable
        self.reason = reason
        message = f"valgrind executable not found: {executable}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class SocketConnectionError(ValgrindError):
    """ローカルTCPソケットの作成・入出力に失敗した。"""

    def __init__(self, message: str = "local TCP I/O error"):
        super().__init__(message)


class ToolInvocationFailedError(ValgrindError):
    """valgrindが非ゼロで終了した。stderrをそのまま保持する。"""

    def __init__(self, stderr: str, returncode: Optional[int] = None):
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(f"invalid valgrind usage: {stderr.strip()}")


class ProcessSignalError(ValgrindError):
    """対象プログラムがシグナルで終了した。

    partial_reportは、終了前にレポートがデコードできた場合のみ設定される。
    Noneと「指摘0件のReport」は区別する。
    """

    def __init__(self, signal_number: int, partial_report: Optional[Report] = None):
        self.signal_number = signal_number
        self.partial_report = partial_report
        super().__init__(f"process terminated by signal {signal_number}")


class MalformedOutputError(ValgrindError):
    """valgrindの出力をデコードできなかった。

    実装側の不具合として扱う。診断用に生の出力を保持する。
    """

    def __init__(self, decode_error: DecodeError, raw_output: bytes):
        self.decode_error = decode_error
        self.raw_output = raw_output
        super().__init__(f"unexpected valgrind output: {decode_error}")
