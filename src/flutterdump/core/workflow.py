"""End-to-end dump workflows: launch or attach, dump, and always clean up."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from flutterdump.core.dumper import (
    DESIGN_DUMP_DIR,
    LAYOUT_DUMP_DIR,
    dump_design,
    dump_layout,
)
from flutterdump.core.injector import CrawlerInjector, Injection
from flutterdump.core.launcher import FlutterRunner
from flutterdump.core.session import Session
from flutterdump.exceptions import InjectionError, LaunchError
from flutterdump.models.dump import DesignDumpResult, LayoutDumpResult
from flutterdump.models.settings import DumpSettings
from flutterdump.utils.logs import add_session_log


def _prompt_hot_reload() -> None:
    print(
        "\n[flutterdump] The crawler was injected. Hot reload the running app "
        "(press 'r' in its flutter run terminal)."
    )
    input("Press Enter when hot reload has completed...")


class DumpWorkflow:
    """Runs one dump against a Flutter project.

    When no VM Service URI is given, the app is started with
    ``flutter run --machine`` and stopped again at the end.
    """

    def __init__(
        self,
        project_path: Path,
        settings: DumpSettings,
        *,
        uri: str | None = None,
        output_dir: Path | None = None,
        confirm_reload: Callable[[], None] = _prompt_hot_reload,
        session_factory: Callable[..., Session] = Session,
        runner_factory: Callable[..., FlutterRunner] = FlutterRunner,
        sleep: Callable[[float], None] = time.sleep,
        log=logger,
    ):
        self.project_path = project_path.resolve()
        self.settings = settings
        self.uri = uri.strip() if uri else None
        self.output_dir = output_dir
        self._confirm_reload = confirm_reload
        self._session_factory = session_factory
        self._runner_factory = runner_factory
        self._sleep = sleep
        self._log = log
        self._runner: FlutterRunner | None = None

    def dump_dir(self, default_name: str) -> Path:
        """Directory receiving the artifacts of this run."""
        if self.output_dir is not None:
            return self.output_dir.resolve()
        return self.project_path / default_name

    def run_design(self) -> DesignDumpResult:
        """Dump the inspector summary tree and per-node details."""
        dump_dir = self.dump_dir(DESIGN_DUMP_DIR)
        sink_id = add_session_log(dump_dir)
        try:
            self._log.info("Project path: {}", self.project_path)
            uri = self._resolve_uri()
            with self._session_factory(uri, settings=self.settings, log=self._log) as session:
                return dump_design(session, dump_dir, sleep=self._sleep)
        except Exception as e:
            self._log.error("Design dump failed: {}", e)
            raise
        finally:
            self._stop_runner()
            self._log.remove(sink_id)

    def run_layout(self, *, include_details: bool = False) -> LayoutDumpResult:
        """Inject the crawler, hot reload, and dump its layout document."""
        if self.settings.crawler_source is None:
            raise InjectionError(
                "No crawler source configured (use --crawler or set "
                "crawler_source in ~/.flutterdump/config.json)"
            )

        dump_dir = self.dump_dir(LAYOUT_DUMP_DIR)
        sink_id = add_session_log(dump_dir)
        injection: Injection | None = None
        try:
            self._log.info("Project path: {}", self.project_path)
            injection = CrawlerInjector(
                self.project_path, self.settings.crawler_source, log=self._log
            ).inject()

            uri = self._resolve_uri()
            self._hot_reload()

            with self._session_factory(uri, settings=self.settings, log=self._log) as session:
                return dump_layout(
                    session,
                    dump_dir,
                    self.project_path,
                    include_details=include_details,
                    sleep=self._sleep,
                )
        except Exception as e:
            self._log.error("Layout dump failed: {}", e)
            raise
        finally:
            self._stop_runner()
            if injection is not None:
                injection.cleanup()
            self._log.remove(sink_id)

    def _resolve_uri(self) -> str:
        if self.uri:
            self._log.info("Using VM Service: {}", self.uri)
            return self.uri

        self._runner = self._runner_factory(
            self.project_path,
            flutter_command=self.settings.flutter_command,
            timeout=self.settings.launch_timeout,
            log=self._log,
        )
        return self._runner.launch().ws_uri

    def _hot_reload(self) -> None:
        if self._runner is None:
            self._confirm_reload()
            return

        # A freshly launched app already compiled the injected import
        try:
            self._runner.hot_reload()
        except LaunchError as e:
            self._log.warning("Hot reload failed (ignored): {}", e)
        self._sleep(self.settings.hot_reload_wait)

    def _stop_runner(self) -> None:
        if self._runner is not None:
            self._runner.stop()
            self._runner = None
