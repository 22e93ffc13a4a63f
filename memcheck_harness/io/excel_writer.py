"""分類結果のExcel出力モジュール。"""

from typing import Dict, List, Optional
from pathlib import Path
from datetime import datetime
import logging

from openpyxl import Workbook
from openpyxl.styles import PatternFill, Font, Alignment, Border, Side

from ..models.classification import ClassifiedReport
from ..models.report import ErrorEntry, Stack

logger = logging.getLogger(__name__)


class ExcelWriter:
    """ClassifiedReportをExcelファイルに書き込む。"""

    # シートごとの色（RGB hex、#なし）
    SHEET_COLORS: Dict[str, str] = {
        "Leaks": "FFC7CE",    # 赤 - リーク
        "Errors": "FFEB9C",   # 黄 - その他のエラー
    }

    LEAK_HEADERS = ["種別", "バイト数", "ブロック数", "発生箇所", "スタックトレース"]
    ERROR_HEADERS = ["ID", "種別", "説明", "発生箇所", "スタックトレース", "補助情報"]

    def __init__(self, output_file: str):
        """Excelライターを初期化する。

        Args:
            output_file: 出力Excelファイルのパス
        """
        self.output_file = Path(output_file)

    def write(
        self,
        report: ClassifiedReport,
        command: Optional[List[str]] = None
    ) -> None:
        """リーク・エラー・サマリーの3シートを書き込む。

        Args:
            report: 分類済みレポート
            command: 実行したコマンド（サマリーに記載、省略可）
        """
        wb = Workbook()
        ws_leaks = wb.active
        ws_leaks.title = "Leaks"
        self._write_headers(ws_leaks, self.LEAK_HEADERS)

        for row, leak in enumerate(report.leaks, 2):
            values = [
                leak.kind.label,
                leak.bytes,
                leak.blocks,
                self._top_frame(leak.stack_trace),
                self._format_stack(leak.stack_trace),
            ]
            self._write_row(ws_leaks, row, values, self.SHEET_COLORS["Leaks"])
        self._adjust_column_widths(ws_leaks, [24, 10, 10, 40, 80])

        ws_errors = wb.create_sheet("Errors")
        self._write_headers(ws_errors, self.ERROR_HEADERS)

        for row, error in enumerate(report.errors, 2):
            values = [
                f"0x{error.unique:x}",
                error.kind.label,
                error.description or "",
                self._top_frame(error.primary_stack),
                self._format_stack(error.primary_stack),
                self._format_auxiliary(error),
            ]
            self._write_row(ws_errors, row, values, self.SHEET_COLORS["Errors"])
        self._adjust_column_widths(ws_errors, [12, 24, 50, 40, 80, 80])

        self._write_summary(wb.create_sheet("Summary"), report, command)

        self.output_file.parent.mkdir(parents=True, exist_ok=True)
        wb.save(self.output_file)
        logger.info(f"Report written to {self.output_file}")

    def _write_headers(self, ws, headers: List[str]) -> None:
        """ヘッダー行を書き込む。

        Args:
            ws: ワークシートオブジェクト
            headers: 列ヘッダー
        """
        header_fill = PatternFill(
            start_color="4472C4",
            end_color="4472C4",
            fill_type="solid"
        )
        white_font = Font(bold=True, color="FFFFFF")

        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=1, column=col)
            cell.value = header
            cell.font = white_font
            cell.alignment = Alignment(horizontal="center", vertical="center")
            cell.fill = header_fill
            cell.border = self._thin_border()

    def _write_row(self, ws, row_num: int, values: list, color: str) -> None:
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row_num, column=col)
            cell.value = value
            cell.border = self._thin_border()
            if isinstance(value, int):
                cell.alignment = Alignment(horizontal="right")
            else:
                cell.alignment = Alignment(wrap_text=True, vertical="top")

        # 種別列を色分け
        kind_col = 1 if ws.title == "Leaks" else 2
        ws.cell(row=row_num, column=kind_col).fill = PatternFill(
            start_color=color,
            end_color=color,
            fill_type="solid"
        )

    def _write_summary(
        self,
        ws,
        report: ClassifiedReport,
        command: Optional[List[str]]
    ) -> None:
        """統計情報を含むサマリーシートを書き込む。

        Args:
            ws: ワークシートオブジェクト
            report: 分類済みレポート
            command: 実行したコマンド
        """
        ws["A1"] = "memcheck結果サマリー"
        ws["A1"].font = Font(bold=True, size=14)
        ws.merge_cells("A1:B1")

        ws["A2"] = f"生成日時: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        ws.merge_cells("A2:B2")

        rows = [
            ("リーク件数", len(report.leaks)),
            ("リーク合計バイト数", report.total_leaked_bytes),
            ("リーク合計ブロック数", report.total_leaked_blocks),
            ("その他のエラー件数", report.other_error_count),
        ]
        if command:
            rows.insert(0, ("コマンド", " ".join(command)))

        for row, (label, value) in enumerate(rows, 4):
            cell_label = ws.cell(row=row, column=1)
            cell_label.value = label
            cell_label.font = Font(bold=True)
            cell_label.border = self._thin_border()

            cell_value = ws.cell(row=row, column=2)
            cell_value.value = value
            cell_value.alignment = Alignment(horizontal="right")
            cell_value.border = self._thin_border()

        ws.column_dimensions["A"].width = 24
        ws.column_dimensions["B"].width = 40

    def _adjust_column_widths(self, ws, widths: List[int]) -> None:
        for i, width in enumerate(widths, 1):
            col_letter = ws.cell(row=1, column=i).column_letter
            ws.column_dimensions[col_letter].width = width

    @staticmethod
    def _thin_border() -> Border:
        return Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin")
        )

    @staticmethod
    def _top_frame(stack: Stack) -> str:
        return str(stack.frames[0]) if stack.frames else ""

    @staticmethod
    def _format_stack(stack: Stack) -> str:
        return "\n".join(f"at {frame}" for frame in stack)

    @classmethod
    def _format_auxiliary(cls, error: ErrorEntry) -> str:
        parts = []
        for info, stack in error.auxiliary_stacks():
            parts.append(info or "additional stack trace")
            parts.append(cls._format_stack(stack))
        # スタックと対にならない補助説明
        paired = len(error.stack_traces) - 1
        parts.extend(error.auxiliary_info[paired:])
        return "\n".join(parts)
