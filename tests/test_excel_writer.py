"""Excel出力のテスト。"""

from pathlib import Path
from tempfile import TemporaryDirectory

from openpyxl import load_workbook

from memcheck_harness.classifier.aggregator import classify
from memcheck_harness.io.excel_writer import ExcelWriter
from memcheck_harness.models.classification import ClassifiedReport
from memcheck_harness.valgrind.xml_decoder import decode

DATA_DIR = Path(__file__).parent / "data"


def _sample_report() -> ClassifiedReport:
    return classify(decode((DATA_DIR / "memory-leaks.xml").read_bytes()))


class TestExcelWriter:
    """ExcelWriterのテスト。"""

    def test_sheets(self):
        """3つのシートが作成されるテスト。"""
        with TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "out" / "report.xlsx"
            ExcelWriter(str(output)).write(_sample_report(), ["./target"])

            wb = load_workbook(output)

        assert wb.sheetnames == ["Leaks", "Errors", "Summary"]

    def test_leak_rows(self):
        """リークシートの内容テスト。"""
        with TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "report.xlsx"
            ExcelWriter(str(output)).write(_sample_report())

            ws = load_workbook(output)["Leaks"]

        assert ws.cell(row=1, column=1).value == "種別"
        assert ws.max_row == 3
        assert ws.cell(row=2, column=2).value == 15
        assert ws.cell(row=2, column=3).value == 1
        assert ws.cell(row=2, column=4).value == "realloc (vg_replace_malloc.c:826)"
        assert ws.cell(row=3, column=2).value == 24

    def test_error_rows(self):
        """エラーシートの内容テスト。"""
        with TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "report.xlsx"
            ExcelWriter(str(output)).write(_sample_report())

            ws = load_workbook(output)["Errors"]

        assert ws.max_row == 2
        assert ws.cell(row=2, column=1).value == "0x1"
        assert "at ffi_bug::main (main.rs:9)" in ws.cell(row=2, column=5).value
        assert "0 bytes inside a block of size 8 free'd" in ws.cell(row=2, column=6).value

    def test_summary(self):
        """サマリーシートの集計値テスト。"""
        with TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "report.xlsx"
            ExcelWriter(str(output)).write(_sample_report(), ["./target", "--flag"])

            ws = load_workbook(output)["Summary"]

        values = {
            ws.cell(row=row, column=1).value: ws.cell(row=row, column=2).value
            for row in range(4, ws.max_row + 1)
        }
        assert values["コマンド"] == "./target --flag"
        assert values["リーク件数"] == 2
        assert values["リーク合計バイト数"] == 39
        assert values["その他のエラー件数"] == 1

    def test_empty_report(self):
        """指摘が無い場合もヘッダーとサマリーが出力されるテスト。"""
        with TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "report.xlsx"
            ExcelWriter(str(output)).write(ClassifiedReport())

            wb = load_workbook(output)

        assert wb["Leaks"].max_row == 1
        assert wb["Errors"].max_row == 1
