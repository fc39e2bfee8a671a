"""Temporary injection of the layout crawler into a Flutter project."""

from __future__ import annotations

import re
from pathlib import Path

from loguru import logger

from flutterdump.exceptions import InjectionError

CRAWLER_FILE_NAME = "figma_temp_crawler.dart"
CRAWLER_LIBRARY_MARKER = "figma_temp_crawler"
CRAWLER_IMPORT = f"import '{CRAWLER_FILE_NAME}';"

# The match stops before a trailing \r so CRLF sources keep their endings
_IMPORT_RE = re.compile(r"""^import\s+['"].*['"];?[ \t]*(?=\r?$)""", re.MULTILINE)


def add_crawler_import(source: str) -> str:
    """Insert the crawler import after the last import of ``source``.

    The inserted line uses the line ending already found in ``source``.
    """
    if CRAWLER_IMPORT in source:
        return source

    newline = "\r\n" if "\r\n" in source else "\n"
    imports = list(_IMPORT_RE.finditer(source))
    if not imports:
        return f"{CRAWLER_IMPORT}{newline}{source}"

    end = imports[-1].end()
    return f"{source[:end]}{newline}{CRAWLER_IMPORT}{source[end:]}"


class Injection:
    """Handle for an injected crawler; :meth:`cleanup` restores the project."""

    def __init__(
        self, main_path: Path, original_main: bytes, crawler_path: Path, log=logger
    ):
        self.main_path = main_path
        self.original_main = original_main
        self.crawler_path = crawler_path
        self._log = log
        self._cleaned = False

    def cleanup(self) -> None:
        """Restore ``main.dart`` byte-for-byte and delete the crawler file. Runs once."""
        if self._cleaned:
            return
        self._cleaned = True

        try:
            if self.main_path.exists():
                self.main_path.write_bytes(self.original_main)
                self._log.info("Restored {}", self.main_path)

            if self.crawler_path.exists():
                self.crawler_path.unlink()
                self._log.info("Removed {}", self.crawler_path)
        except OSError as e:
            self._log.error("Failed to restore project files: {}", e)

    def __enter__(self) -> Injection:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.cleanup()
        return False


class CrawlerInjector:
    """Writes the crawler library into ``lib/`` and imports it from ``main.dart``."""

    def __init__(self, project_path: Path, crawler_source: Path, log=logger):
        """Initialize the injector.

        Args:
            project_path: Flutter project root.
            crawler_source: Dart file exposing ``figmaExtractorEntryPoint()``.
            log: Logger.
        """
        self.project_path = project_path.resolve()
        self.crawler_source = crawler_source
        self._log = log

    @property
    def main_path(self) -> Path:
        return self.project_path / "lib" / "main.dart"

    @property
    def crawler_path(self) -> Path:
        return self.project_path / "lib" / CRAWLER_FILE_NAME

    def inject(self) -> Injection:
        """Inject the crawler.

        ``main.dart`` is kept as raw bytes so that cleanup restores it
        exactly, line endings included.

        Returns:
            Injection whose ``cleanup`` must be called once the dump ends.

        Raises:
            InjectionError: If ``main.dart`` is missing or not UTF-8, or the
                crawler source cannot be read.
        """
        if not self.main_path.is_file():
            raise InjectionError(f"lib/main.dart not found in {self.project_path}")

        try:
            crawler_code = self.crawler_source.read_bytes()
        except OSError as e:
            raise InjectionError(
                f"Failed to read crawler source {self.crawler_source}: {e}"
            ) from e

        original_main = self.main_path.read_bytes()
        try:
            main_source = original_main.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InjectionError(f"{self.main_path} is not valid UTF-8: {e}") from e

        self.crawler_path.write_bytes(crawler_code)
        self._log.info("Created crawler file: {}", self.crawler_path)

        injection = Injection(self.main_path, original_main, self.crawler_path, self._log)
        try:
            self.main_path.write_bytes(add_crawler_import(main_source).encode("utf-8"))
        except OSError as e:
            injection.cleanup()
            raise InjectionError(f"Failed to update {self.main_path}: {e}") from e

        self._log.info("Added crawler import to {}", self.main_path)
        return injection
