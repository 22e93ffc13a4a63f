"""設定管理モジュール。"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
from pathlib import Path
import os
import logging

import yaml

logger = logging.getLogger(__name__)

# 追加のvalgrindオプションを指定する環境変数（空白区切り）
FLAGS_ENV_VAR = "VALGRINDFLAGS"


def split_flags(value: str) -> List[str]:
    """空白区切りのフラグ文字列を分割する。空のトークンは除く。

    Args:
        value: フラグ文字列

    Returns:
        フラグのリスト
    """
    return value.split()


@dataclass
class Config:
    """アプリケーション設定。"""

    # valgrind実行ファイル（PATHから検索）
    valgrind_path: str = "valgrind"

    # 利用者が指定する追加オプション
    extra_flags: List[str] = field(default_factory=list)

    # サプレッション設定
    use_bundled_suppressions: bool = True
    suppression_files: List[str] = field(default_factory=list)
    suppression_directories: List[str] = field(default_factory=list)

    # 接続待ち中の中断確認間隔（秒）
    accept_poll_interval: float = 0.1

    # ロギング設定
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_yaml(cls, file_path: str) -> "Config":
        """YAMLファイルから設定を読み込む。

        Args:
            file_path: YAML設定ファイルのパス

        Returns:
            Configインスタンス
        """
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        config = cls.from_dict(data)
        config.apply_environment()

        logger.info(f"Configuration loaded from {file_path}")
        return config

    @classmethod
    def from_environment(cls) -> "Config":
        """デフォルト設定に環境変数を反映して作成する。"""
        config = cls()
        config.apply_environment()
        return config

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """辞書から設定を作成する。

        Args:
            data: 設定辞書

        Returns:
            Configインスタンス
        """
        config = cls()

        for key, value in data.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown configuration key: {key}")

        # 文字列で指定された場合も受け付ける
        if isinstance(config.extra_flags, str):
            config.extra_flags = split_flags(config.extra_flags)

        return config

    def apply_environment(self) -> None:
        """環境変数で設定を上書きする（環境変数が優先）。"""
        flags = os.getenv(FLAGS_ENV_VAR)
        if flags is not None:
            self.extra_flags = split_flags(flags)
            logger.debug(f"Extra valgrind flags from {FLAGS_ENV_VAR}: {self.extra_flags}")

    def validate(self) -> List[str]:
        """設定を検証する。

        Returns:
            検証エラーのリスト（有効な場合は空）
        """
        errors = []

        if not self.valgrind_path:
            errors.append("valgrind_path must not be empty")
        if self.accept_poll_interval <= 0:
            errors.append("accept_poll_interval must be positive")

        for path in self.suppression_files:
            if not Path(path).is_file():
                errors.append(f"Suppression file does not exist: {path}")

        for path in self.suppression_directories:
            if not Path(path).is_dir():
                logger.warning(f"Suppression directory does not exist: {path}")

        return errors

    def to_dict(self) -> dict:
        """設定を辞書に変換する。

        Returns:
            辞書形式の設定
        """
        data: Dict[str, Any] = {
            "valgrind_path": self.valgrind_path,
            "extra_flags": self.extra_flags,
            "use_bundled_suppressions": self.use_bundled_suppressions,
            "suppression_files": self.suppression_files,
            "suppression_directories": self.suppression_directories,
            "accept_poll_interval": self.accept_poll_interval,
            "log_level": self.log_level,
        }
        if self.log_file:
            data["log_file"] = self.log_file
        return data

    def save_yaml(self, file_path: str) -> None:
        """設定をYAMLファイルに保存。

        Args:
            file_path: 保存先パス
        """
        output_path = Path(file_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.to_dict(),
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False
            )

        logger.info(f"Configuration saved to {file_path}")
