"""valgrindプロセスの起動とXMLレポート受信を管理するモジュール。

XMLはTCPソケット経由で受信する。acceptはvalgrindが接続するまでブロックし、
引数エラー等でvalgrindが接続せずに終了した場合は永久に返らない。
そのため受信とデコードは別スレッドで行い、メインスレッドはプロセス終了を待つ。
"""

from typing import List, Optional, Sequence, Set
import contextlib
import logging
import os
import shlex
import signal
import subprocess
import threading

from ..config import Config
from ..io.suppressions import SuppressionBundle
from ..models.report import Report
from .errors import (
    DecodeError,
    MalformedOutputError,
    ProcessSignalError,
    SocketConnectionError,
    ToolInvocationFailedError,
    ToolNotInstalledError,
)
from .transport import accept_and_drain, open_listener
from .xml_decoder import decode, decode_partial

logger = logging.getLogger(__name__)

_ACTIVE_CHILDREN: Set[subprocess.Popen] = set()
_ACTIVE_CHILDREN_LOCK = threading.Lock()
_SIGNAL_HANDLERS_INSTALLED = False


class _ReportReader(threading.Thread):
    """XMLレポートを受信してデコードするワーカースレッド。

    失敗時にはjoinされずに放棄されることがあるため、daemonスレッドとする。
    """

    def __init__(
        self,
        listener,
        cancelled: threading.Event,
        poll_interval: float
    ):
        super().__init__(name="valgrind-xml-reader", daemon=True)
        self._listener = listener
        self._cancelled = cancelled
        self._poll_interval = poll_interval

        self.raw_output: Optional[bytes] = None
        self.report: Optional[Report] = None
        self.error: Optional[Exception] = None

    def run(self) -> None:
        try:
            self.raw_output = accept_and_drain(
                self._listener, self._cancelled, self._poll_interval
            )
            self.report = decode(self.raw_output)
        except Exception as e:
            # 呼び出し側スレッドで再送出する
            self.error = e

    def result(self) -> Report:
        """デコード結果を返す。

        Raises:
            MalformedOutputError: デコードに失敗した場合
            SocketConnectionError: 受信に失敗した場合
        """
        if isinstance(self.error, DecodeError):
            raise MalformedOutputError(self.error, self.raw_output or b"")
        if self.error is not None:
            raise self.error
        return self.report

    def partial_report(self) -> Optional[Report]:
        """シグナル終了時用に、デコードできた範囲のレポートを返す。"""
        if self.report is not None:
            return self.report
        if self.raw_output:
            return decode_partial(self.raw_output)
        return None


class ValgrindSupervisor:
    """memcheck配下でコマンドを実行し、Reportを取得する。"""

    def __init__(
        self,
        config: Optional[Config] = None,
        suppressions: Optional[SuppressionBundle] = None
    ):
        """スーパーバイザーを初期化する。

        Args:
            config: アプリケーション設定（省略時は環境変数を反映したデフォルト）
            suppressions: valgrindに渡すサプレッション（省略時はなし）
        """
        self.config = config or Config.from_environment()
        self.suppressions = suppressions if suppressions is not None else SuppressionBundle()

    def build_arguments(
        self,
        address: str,
        command: Sequence[str],
        suppression_file: Optional[str] = None
    ) -> List[str]:
        """valgrindの引数リストを構築する。

        Args:
            address: XML送信先の"host:port"
            command: 対象コマンド（末尾にそのまま追加）
            suppression_file: サプレッションファイルのパス（省略可）

        Returns:
            引数リスト（先頭はvalgrind実行ファイル）
        """
        args = [
            self.config.valgrind_path,
            "--xml=yes",
            f"--xml-socket={address}",
        ]
        if suppression_file:
            args.append(f"--suppressions={suppression_file}")
        args.extend(self.config.extra_flags)
        args.extend(command)
        return args

    def execute(self, command: Sequence[str]) -> Report:
        """コマンドをvalgrind配下で実行し、レポートを返す。

        Args:
            command: ビルド済み実行ファイルと引数

        Returns:
            デコード済みのReport

        Raises:
            ToolNotInstalledError: valgrindを起動できない場合
            SocketConnectionError: ソケットの作成・受信に失敗した場合
            ToolInvocationFailedError: valgrindが非ゼロで終了した場合
            ProcessSignalError: プロセスがシグナルで終了した場合
            MalformedOutputError: XMLをデコードできない場合
        """
        command = [os.fspath(token) for token in command]
        if not command:
            raise ValueError("command must not be empty")

        listener, address = open_listener()
        reader_started = False
        try:
            with self.suppressions.temporary_file() as suppression_file:
                args = self.build_arguments(address, command, suppression_file)
                logger.debug(f"Running: {shlex.join(args)}")

                try:
                    child = subprocess.Popen(args, stderr=subprocess.PIPE)
                except OSError as e:
                    raise ToolNotInstalledError(args[0], str(e)) from e

                cancelled = threading.Event()
                reader = _ReportReader(
                    listener, cancelled, self.config.accept_poll_interval
                )
                reader.start()
                reader_started = True

                returncode, stderr = self._wait(child, cancelled)
        finally:
            if not reader_started:
                listener.close()

        # 終了後の接続はすでにacceptキューにあるため、以降acceptは待たない
        cancelled.set()

        if returncode == 0:
            reader.join()
            report = reader.result()
            logger.info(f"valgrind finished: {len(report.errors)} errors reported")
            if stderr:
                logger.debug(f"valgrind stderr:\n{stderr}")
            return report

        if returncode < 0:
            signal_number = -returncode
            reader.join()
            partial = reader.partial_report()
            logger.warning(
                f"Process terminated by signal {signal_number} "
                f"({'partial report available' if partial else 'no report'})"
            )
            raise ProcessSignalError(signal_number, partial)

        # readerはjoinせずに放棄する（cancelledにより接続待ちは終了する）
        logger.warning(f"valgrind exited with status {returncode}")
        raise ToolInvocationFailedError(stderr, returncode)

    def _wait(self, child: subprocess.Popen, cancelled: threading.Event):
        """子プロセスの終了を待ち、終了コードとstderrを返す。"""
        _install_signal_cleanup_handlers()
        with _ACTIVE_CHILDREN_LOCK:
            _ACTIVE_CHILDREN.add(child)
        try:
            _, stderr = child.communicate()
        except BaseException:
            cancelled.set()
            _terminate_child(child)
            raise
        finally:
            with _ACTIVE_CHILDREN_LOCK:
                _ACTIVE_CHILDREN.discard(child)

        logger.debug(f"valgrind exited with return code {child.returncode}")
        return child.returncode, (stderr or b"").decode("utf-8", errors="replace")


def execute(
    command: Sequence[str],
    config: Optional[Config] = None,
    suppressions: Optional[SuppressionBundle] = None
) -> Report:
    """コマンドをvalgrind配下で実行する（ValgrindSupervisor.executeの簡易版）。"""
    return ValgrindSupervisor(config, suppressions).execute(command)


def _terminate_child(child: subprocess.Popen, grace: float = 1.0) -> None:
    if child.poll() is not None:
        return
    with contextlib.suppress(OSError):
        child.kill()
    with contextlib.suppress(subprocess.TimeoutExpired):
        child.wait(timeout=grace)


def _terminate_active_children() -> None:
    with _ACTIVE_CHILDREN_LOCK:
        children = list(_ACTIVE_CHILDREN)
    for child in children:
        _terminate_child(child, grace=0.35)


def _install_signal_cleanup_handlers() -> None:
    """SIGTERM/SIGHUPで子プロセスを終了させるハンドラを一度だけ登録する。

    既にハンドラが設定されているシグナルは変更しない。
    """
    global _SIGNAL_HANDLERS_INSTALLED
    if _SIGNAL_HANDLERS_INSTALLED:
        return
    if os.name != "posix" or threading.current_thread() is not threading.main_thread():
        return

    def _handler(signum, _frame):
        _terminate_active_children()
        raise SystemExit(128 + int(signum))

    for signum in (signal.SIGTERM, signal.SIGHUP):
        if signal.getsignal(signum) == signal.SIG_DFL:
            signal.signal(signum, _handler)
    _SIGNAL_HANDLERS_INSTALLED = True
