"""
Execution artifacts for a single scenario attempt.

Each attempt gets its own directory under the configured output root:

    <output_dir>/<scenario-slug>-<project>[-retryN]/
        trace.zip
        <video>.webm
        test-failed-1.png

Whether each artifact is recorded is decided before the attempt starts,
and whether it is kept is decided once the outcome is known. Nothing is
left on disk for an artifact whose policy does not match the outcome.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import Any

from playwright.sync_api import BrowserContext, Page

from e2e_runner.config import RunConfig

logger = logging.getLogger(__name__)

TRACE_FILE = "trace.zip"
FAILED_SCREENSHOT = "test-failed-1.png"
FINISHED_SCREENSHOT = "test-finished-1.png"

_MAX_SLUG_LENGTH = 80


def scenario_slug(nodeid: str) -> str:
    """
    Turn a pytest node id into a filesystem-safe directory name.

    Parametrization ids are replaced by a short hash of the full node id so
    that every parameter set still gets a distinct directory.

    Example:
        ``tests/scenarios/basic/test_x.py::TestA::test_b[chromium]``
        becomes ``basic-test-x-testa-test-b-<hash>``.
    """
    base, bracket, _ = nodeid.partition("[")
    path, _, names = base.partition("::")
    path_parts = Path(path).with_suffix("").parts[-2:]
    slug = re.sub(r"[^a-z0-9]+", "-", "-".join([*path_parts, names]).lower()).strip("-")
    slug = slug[:_MAX_SLUG_LENGTH].rstrip("-")
    if bracket:
        slug = f"{slug}-{hashlib.sha1(nodeid.encode('utf-8')).hexdigest()[:6]}"
    return slug


class ArtifactRecorder:
    """
    Records traces, videos and screenshots for one scenario attempt.

    Args:
        config: The run configuration holding the capture policies.
        slug: Scenario slug, see :func:`scenario_slug`.
        project: Name of the browser project running the scenario.
        attempt: Zero-based attempt number.
    """

    def __init__(self, config: RunConfig, slug: str, project: str, attempt: int = 0):
        self.config = config
        self.attempt = attempt
        suffix = f"-retry{attempt}" if attempt else ""
        self.directory = config.output_path / f"{slug}-{project}{suffix}"

    @property
    def records_trace(self) -> bool:
        return self.config.trace.should_record(self.attempt)

    @property
    def records_video(self) -> bool:
        return self.config.video.should_record(self.attempt)

    @property
    def trace_path(self) -> Path:
        return self.directory / TRACE_FILE

    def context_options(self) -> dict[str, Any]:
        """Extra ``browser.new_context`` arguments needed for recording."""
        if not self.records_video:
            return {}
        return {"record_video_dir": str(self.directory)}

    def start(self, context: BrowserContext) -> None:
        """Start tracing on a freshly created context when the policy asks for it."""
        if self.records_trace:
            context.tracing.start(screenshots=True, snapshots=True, sources=True)

    def capture_screenshot(self, page: Page, failed: bool) -> Path | None:
        """
        Take the end-of-scenario screenshot if the policy keeps one.

        Returns:
            The screenshot path, or None when nothing was captured.
        """
        if not self.config.screenshot.should_keep(failed, self.attempt):
            return None
        if page.is_closed():
            logger.warning(f"Page already closed; no screenshot for {self.directory.name}")
            return None
        path = self.directory / (FAILED_SCREENSHOT if failed else FINISHED_SCREENSHOT)
        self.directory.mkdir(parents=True, exist_ok=True)
        page.screenshot(path=str(path), full_page=True)
        logger.info(f"Screenshot saved: {path}")
        return path

    def finish(self, context: BrowserContext, failed: bool) -> list[Path]:
        """
        Stop recording, close the context and drop unwanted artifacts.

        The context is closed and videos are settled even when stopping the
        trace fails; that error is re-raised afterwards.

        Args:
            context: The scenario's browser context.
            failed: Whether the attempt failed.

        Returns:
            Paths of the artifacts that were kept.
        """
        kept: list[Path] = []

        try:
            if self.records_trace:
                kept.extend(self._stop_trace(context, failed))
        finally:
            # Videos are only flushed to disk once the context closes
            context.close()
            if self.records_video:
                kept.extend(self._settle_videos(failed))
            self._remove_if_empty()

        for path in kept:
            logger.info(f"Artifact kept: {path}")
        return kept

    def _stop_trace(self, context: BrowserContext, failed: bool) -> list[Path]:
        if not self.config.trace.should_keep(failed, self.attempt):
            context.tracing.stop()
            return []
        self.directory.mkdir(parents=True, exist_ok=True)
        context.tracing.stop(path=str(self.trace_path))
        return [self.trace_path]

    def _settle_videos(self, failed: bool) -> list[Path]:
        videos = sorted(self.directory.glob("*.webm"))
        if self.config.video.should_keep(failed, self.attempt):
            return videos
        for video in videos:
            video.unlink()
        return []

    def _remove_if_empty(self) -> None:
        if self.directory.is_dir() and not any(self.directory.iterdir()):
            self.directory.rmdir()
