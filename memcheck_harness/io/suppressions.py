"""Suppression file loader for valgrind."""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple
from pathlib import Path
import logging
import os
import tempfile

logger = logging.getLogger(__name__)

# Suppression files shipped with the package
BUNDLED_DIR = Path(__file__).parent / "suppression_files"


@dataclass(frozen=True)
class SuppressionBundle:
    """Immutable set of suppression file contents.

    The bundle is loaded once and handed to the supervisor, which writes it to
    a temporary file for every valgrind run.
    """
    contents: Tuple[str, ...] = ()
    sources: Tuple[str, ...] = ()

    @classmethod
    def bundled(cls) -> "SuppressionBundle":
        """Load the suppression files shipped with this package."""
        loader = SuppressionLoader()
        loader.load_directory(BUNDLED_DIR)
        return loader.bundle()

    def merged(self, other: "SuppressionBundle") -> "SuppressionBundle":
        return SuppressionBundle(
            contents=self.contents + other.contents,
            sources=self.sources + other.sources,
        )

    def text(self) -> str:
        """Concatenate all suppression contents into one file body."""
        return "\n".join(content.rstrip("\n") for content in self.contents) + "\n"

    def __bool__(self) -> bool:
        return bool(self.contents)

    def __len__(self) -> int:
        return len(self.contents)

    @contextmanager
    def temporary_file(self) -> Iterator[Optional[str]]:
        """Write the bundle to a temporary file for the duration of a run.

        Yields:
            Path to the suppression file, or None if the bundle is empty
        """
        if not self.contents:
            yield None
            return

        fd, path = tempfile.mkstemp(prefix="valgrind-suppressions", suffix=".supp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.text())
            yield path
        finally:
            try:
                os.unlink(path)
            except OSError as e:
                logger.warning(f"Failed to remove suppression file {path}: {e}")


class SuppressionLoader:
    """Collect suppression files from directories and explicit paths."""

    def __init__(self):
        """Initialize the suppression loader."""
        self._contents: List[str] = []
        self._sources: List[str] = []

    def load(
        self,
        use_bundled: bool = True,
        directories: Optional[Iterable[str]] = None,
        files: Optional[Iterable[str]] = None
    ) -> SuppressionBundle:
        """Load suppressions based on configuration.

        Args:
            use_bundled: Include the suppression files shipped with the package
            directories: Directories searched (non-recursively) for files
            files: Explicit suppression file paths

        Returns:
            SuppressionBundle with every successfully read file
        """
        if use_bundled:
            self.load_directory(BUNDLED_DIR)
        for directory in directories or []:
            self.load_directory(directory)
        for path in files or []:
            self.load_file(path)

        bundle = self.bundle()
        logger.info(f"Loaded {len(bundle)} suppression files")
        return bundle

    def load_directory(self, directory) -> int:
        """Load every regular file of a directory.

        Unreadable entries are skipped.

        Args:
            directory: Directory path

        Returns:
            Number of files loaded
        """
        path = Path(directory)
        if not path.is_dir():
            logger.warning(f"Suppression directory not found: {path}")
            return 0

        loaded = 0
        for entry in sorted(path.iterdir()):
            if entry.is_file() and self.load_file(entry):
                loaded += 1

        logger.debug(f"Loaded {loaded} suppression files from {path}")
        return loaded

    def load_file(self, file_path) -> bool:
        """Load a single suppression file.

        Args:
            file_path: Path to the suppression file

        Returns:
            True if the file was read
        """
        path = Path(file_path)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read suppression file {path}: {e}")
            return False

        self._contents.append(content)
        self._sources.append(str(path))
        return True

    def bundle(self) -> SuppressionBundle:
        """Freeze the loaded files into a bundle."""
        return SuppressionBundle(
            contents=tuple(self._contents),
            sources=tuple(self._sources),
        )
