"""memcheck実行ハーネスのメインエントリーポイント。"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence
import logging

from .config import Config
from .classifier.aggregator import classify
from .io.console_writer import ConsoleWriter
from .io.excel_writer import ExcelWriter
from .io.suppressions import SuppressionBundle, SuppressionLoader
from .models.classification import ClassifiedReport
from .models.report import Report
from .valgrind.errors import (
    MalformedOutputError,
    ProcessSignalError,
    ValgrindError,
)
from .valgrind.supervisor import ValgrindSupervisor
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)

EXIT_CLEAN = 0
EXIT_FINDINGS = 1
EXIT_FAILURE = 2
EXIT_INTERNAL_ERROR = 101

BUG_REPORT_MESSAGE = (
    "Oooops. memcheck-harness could not understand the valgrind output. "
    "This is a bug!\n"
    "Please submit a bug report including the raw output below and "
    "information on how to reproduce it."
)


def load_suppressions(config: Config) -> SuppressionBundle:
    """設定に従ってサプレッションを読み込む。

    Args:
        config: アプリケーション設定

    Returns:
        SuppressionBundle
    """
    return SuppressionLoader().load(
        use_bundled=config.use_bundled_suppressions,
        directories=config.suppression_directories,
        files=config.suppression_files,
    )


def run(
    command: Sequence[str],
    config: Optional[Config] = None,
    suppressions: Optional[SuppressionBundle] = None
) -> ClassifiedReport:
    """コマンドをvalgrind配下で実行し、分類済みレポートを返す。

    Args:
        command: ビルド済み実行ファイルと引数
        config: アプリケーション設定（省略可）
        suppressions: サプレッション（省略時は設定から読み込む）

    Returns:
        ClassifiedReport

    Raises:
        ValgrindError: 実行に失敗した場合（種類はサブクラスで区別）
    """
    config = config or Config.from_environment()
    if suppressions is None:
        suppressions = load_suppressions(config)

    supervisor = ValgrindSupervisor(config, suppressions)
    return classify(supervisor.execute(command))


def _report_findings(
    report: ClassifiedReport,
    command: List[str],
    output: Optional[str]
) -> int:
    ConsoleWriter().write(report)
    if output:
        ExcelWriter(output).write(report, command)
    return EXIT_CLEAN if report.is_clean else EXIT_FINDINGS


def _report_signal(
    error: ProcessSignalError,
    command: List[str],
    output: Optional[str]
) -> int:
    partial: Optional[Report] = error.partial_report
    if partial is None:
        logger.error(
            f"Program terminated by signal {error.signal_number} "
            "before any report was received"
        )
    else:
        logger.error(
            f"Program terminated by signal {error.signal_number} "
            f"after reporting {len(partial.errors)} errors"
        )
        _report_findings(classify(partial), command, output)
    return 128 + error.signal_number


def main(argv: Optional[List[str]] = None) -> int:
    """メインエントリーポイント。

    Returns:
        終了コード
    """
    parser = argparse.ArgumentParser(
        prog="memcheck-harness",
        description="Run a program under valgrind memcheck and report memory errors"
    )
    parser.add_argument(
        "-c", "--config",
        help="設定ファイルパス（YAML）"
    )
    parser.add_argument(
        "-o", "--output",
        help="結果を書き出すExcelファイル"
    )
    parser.add_argument(
        "-s", "--suppressions",
        action="append",
        default=[],
        metavar="FILE",
        help="追加のサプレッションファイル（複数指定可）"
    )
    parser.add_argument(
        "--no-default-suppressions",
        action="store_true",
        help="同梱のサプレッションを使用しない"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="詳細ログを有効にする"
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="実行するコマンドと引数（'--'の後に指定）"
    )

    args = parser.parse_args(argv)

    command = args.command
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("実行するコマンドを指定してください")

    # 設定を読み込み
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: 設定ファイルが見つかりません: {args.config}", file=sys.stderr)
            return EXIT_FAILURE
        config = Config.from_yaml(str(config_path))
    else:
        config = Config.from_environment()

    if args.verbose:
        config.log_level = "DEBUG"
    if args.no_default_suppressions:
        config.use_bundled_suppressions = False
    config.suppression_files = list(config.suppression_files) + args.suppressions

    setup_logging(level=config.log_level, log_file=config.log_file)

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return EXIT_FAILURE

    try:
        report = run(command, config)
    except ProcessSignalError as e:
        return _report_signal(e, command, args.output)
    except MalformedOutputError as e:
        print(BUG_REPORT_MESSAGE, file=sys.stderr)
        print(f"\n{e}\n", file=sys.stderr)
        print(e.raw_output.decode("utf-8", errors="replace"), file=sys.stderr)
        return EXIT_INTERNAL_ERROR
    except ValgrindError as e:
        logger.error(str(e))
        return EXIT_FAILURE

    return _report_findings(report, command, args.output)


if __name__ == "__main__":
    sys.exit(main())
