"""デコード済みレポートをリークとその他のエラーに分類する。"""

from typing import List
import logging

from ..models.classification import ClassifiedReport, Leak
from ..models.report import ErrorEntry, Report

logger = logging.getLogger(__name__)


def is_empty_leak(error: ErrorEntry) -> bool:
    """0バイト・0ブロックのリーク（情報の無いノイズ）かどうか。"""
    return (
        error.kind.is_leak()
        and error.resources.bytes == 0
        and error.resources.blocks == 0
    )


def classify(report: Report) -> ClassifiedReport:
    """レポートをリークとその他のエラーに分類し、合計を計算する。

    0バイト・0ブロックのリークはここで除外する。Report自体は
    valgrindの出力をそのまま反映したままにしておく。

    Args:
        report: デコード済みのReport

    Returns:
        ClassifiedReport
    """
    leaks: List[Leak] = []
    errors: List[ErrorEntry] = []
    dropped = 0

    for error in report.errors:
        if not error.kind.is_leak():
            errors.append(error)
        elif is_empty_leak(error):
            dropped += 1
        else:
            leaks.append(Leak.from_error(error))

    if dropped:
        logger.debug(f"Dropped {dropped} empty leak entries")

    return ClassifiedReport(
        leaks=tuple(leaks),
        errors=tuple(errors),
        total_leaked_bytes=sum(leak.bytes for leak in leaks),
    )
