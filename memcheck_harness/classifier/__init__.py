"""memcheckレポートの分類モジュール。"""

from .aggregator import classify, is_empty_leak

__all__ = ["classify", "is_empty_leak"]
