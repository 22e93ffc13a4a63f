"""サプレッション読み込みのテスト。"""

import os
from pathlib import Path
from tempfile import TemporaryDirectory

from memcheck_harness.io.suppressions import (
    BUNDLED_DIR,
    SuppressionBundle,
    SuppressionLoader,
)


class TestSuppressionBundle:
    """SuppressionBundleのテスト。"""

    def test_bundled(self):
        """同梱サプレッションが読み込まれるテスト。"""
        bundle = SuppressionBundle.bundled()

        assert bundle
        assert len(bundle) == len([p for p in BUNDLED_DIR.iterdir() if p.is_file()])
        assert "Memcheck:Leak" in bundle.text()

    def test_text_joins_contents(self):
        bundle = SuppressionBundle(contents=("{\n a\n}\n\n", "{\n b\n}"))
        assert bundle.text() == "{\n a\n}\n{\n b\n}\n"

    def test_merged(self):
        first = SuppressionBundle(contents=("a",), sources=("a.supp",))
        second = SuppressionBundle(contents=("b",), sources=("b.supp",))

        merged = first.merged(second)

        assert merged.contents == ("a", "b")
        assert merged.sources == ("a.supp", "b.supp")

    def test_temporary_file(self):
        """一時ファイルが作成され、終了後に削除されるテスト。"""
        bundle = SuppressionBundle(contents=("{\n   rule\n   Memcheck:Leak\n}",))

        with bundle.temporary_file() as path:
            assert path is not None
            assert Path(path).read_text(encoding="utf-8") == bundle.text()

        assert not os.path.exists(path)

    def test_empty_bundle_yields_none(self):
        bundle = SuppressionBundle()

        assert not bundle
        with bundle.temporary_file() as path:
            assert path is None


class TestSuppressionLoader:
    """SuppressionLoaderのテスト。"""

    def test_load_directory_in_sorted_order(self):
        """ディレクトリ内のファイルが名前順に読み込まれるテスト。"""
        with TemporaryDirectory() as tmpdir:
            directory = Path(tmpdir)
            (directory / "b.supp").write_text("second")
            (directory / "a.supp").write_text("first")
            (directory / "nested").mkdir()
            (directory / "nested" / "c.supp").write_text("ignored")

            loader = SuppressionLoader()
            loaded = loader.load_directory(directory)
            bundle = loader.bundle()

        assert loaded == 2
        assert bundle.contents == ("first", "second")
        assert [Path(s).name for s in bundle.sources] == ["a.supp", "b.supp"]

    def test_missing_file_is_skipped(self):
        """存在しないファイルは警告のみで読み飛ばすテスト。"""
        loader = SuppressionLoader()

        assert loader.load_file("/nonexistent/rules.supp") is False
        assert not loader.bundle()

    def test_missing_directory(self):
        assert SuppressionLoader().load_directory("/nonexistent/supp") == 0

    def test_load(self):
        """同梱・ディレクトリ・個別ファイルの順に読み込まれるテスト。"""
        with TemporaryDirectory() as tmpdir:
            directory = Path(tmpdir) / "supp"
            directory.mkdir()
            (directory / "dir.supp").write_text("from directory")
            extra = Path(tmpdir) / "extra.supp"
            extra.write_text("explicit")

            bundle = SuppressionLoader().load(
                use_bundled=True,
                directories=[str(directory)],
                files=[str(extra)],
            )

        bundled = SuppressionBundle.bundled()
        assert bundle.contents[:len(bundled)] == bundled.contents
        assert bundle.contents[len(bundled):] == ("from directory", "explicit")

    def test_load_without_bundled(self):
        assert not SuppressionLoader().load(use_bundled=False)
