"""コマンドラインエントリーポイントのテスト。"""

import logging
import os
import signal
from pathlib import Path

import pytest

from memcheck_harness.config import FLAGS_ENV_VAR
from memcheck_harness.main import (
    BUG_REPORT_MESSAGE,
    EXIT_CLEAN,
    EXIT_FAILURE,
    EXIT_FINDINGS,
    EXIT_INTERNAL_ERROR,
    main,
)

pytestmark = pytest.mark.skipif(os.name != "posix", reason="requires POSIX signals")

SAMPLE_XML = Path(__file__).parent / "data" / "memory-leaks.xml"


@pytest.fixture(autouse=True)
def restore_logging():
    """mainが変更したルートロガーのハンドラーを元に戻す。"""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(workdir, monkeypatch):
    """偽のvalgrindを指す設定ファイル。"""
    monkeypatch.delenv(FLAGS_ENV_VAR, raising=False)
    path = workdir / "config.yaml"
    path.write_text(
        f"valgrind_path: {workdir / 'fake-valgrind'}\n"
        "accept_poll_interval: 0.01\n"
    )
    return str(path)


class TestMain:
    """main関数のテスト。"""

    def test_findings(self, config_file, capsys):
        """指摘がある場合は終了コード1になるテスト。"""
        code = main(["-c", config_file, "--", "send", str(SAMPLE_XML)])

        assert code == EXIT_FINDINGS
        assert "Summary Leaked 39 B total (1 other errors)" in capsys.readouterr().err

    def test_clean(self, config_file, workdir, capsys):
        code = main(["-c", config_file, "send", str(workdir / "clean.xml")])

        assert code == EXIT_CLEAN
        assert "Leaked 0 B total" in capsys.readouterr().err

    def test_excel_output(self, config_file, workdir):
        """-oでExcelファイルが出力されるテスト。"""
        output = workdir / "result.xlsx"

        main(["-c", config_file, "-o", str(output), "--", "send", str(SAMPLE_XML)])

        assert output.exists()

    def test_tool_failure(self, config_file):
        assert main(["-c", config_file, "--", "usage-error"]) == EXIT_FAILURE

    def test_missing_config(self, workdir):
        assert main(["-c", str(workdir / "missing.yaml"), "--", "true"]) == EXIT_FAILURE

    def test_missing_suppression_file(self, config_file, workdir):
        """存在しないサプレッションファイルは設定エラーになるテスト。"""
        code = main([
            "-c", config_file, "-s", str(workdir / "missing.supp"),
            "--", "send", str(SAMPLE_XML),
        ])

        assert code == EXIT_FAILURE

    def test_extra_suppression_file(self, config_file, workdir):
        """-sで指定したファイルがvalgrindに渡されるテスト。"""
        supp = workdir / "project.supp"
        supp.write_text("{\n   rule\n   Memcheck:Leak\n}\n")

        code = main([
            "-c", config_file, "--no-default-suppressions", "-s", str(supp),
            "--", "check-suppressions", str(workdir / "clean.xml"),
        ])

        assert code == EXIT_CLEAN

    def test_malformed_output(self, config_file, workdir, capsys):
        """デコードできない出力は生データと共に報告されるテスト。"""
        bad = workdir / "bad.xml"
        bad.write_text("<valgrindoutput><protocolversion>9</protocolversion>")

        code = main(["-c", config_file, "--", "send", str(bad)])

        err = capsys.readouterr().err
        assert code == EXIT_INTERNAL_ERROR
        assert BUG_REPORT_MESSAGE in err
        assert "<protocolversion>9</protocolversion>" in err

    def test_signal_exit_code(self, config_file, capsys):
        """シグナル終了時は128+シグナル番号になり、部分的な指摘も出力されるテスト。"""
        code = main([
            "-c", config_file, "--",
            "send-then-signal", str(SAMPLE_XML), str(int(signal.SIGABRT)),
        ])

        assert code == 128 + signal.SIGABRT
        assert "Summary Leaked 39 B total" in capsys.readouterr().err

    def test_command_required(self):
        with pytest.raises(SystemExit):
            main([])
