"""Failure evidence capture for scenario runs.

When a step fails the runner asks a :class:`ProofSession` to save what the
browser was showing: the page HTML, a screenshot where the driver can take
one, and the actions performed during the step. Everything lands in a
per-scenario directory with a ``manifest.json`` listing the artifacts.

Usage::

    config = CaptureConfig(output_dir=Path('evidence'))
    session = ProofSession(config, scenario_id='products-004')
    await session.capture_page(step=3, description='search results', driver=driver)
    artifacts = session.finalize()
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from ..browser.protocols import BrowserDriver
from ..errors import DriverNotSupported
from ..observability import get_logger

log = get_logger(__name__)


class ArtifactType(str, Enum):
    """Type of evidence artifact."""

    HTML = 'html'
    SCREENSHOT = 'screenshot'
    ACTIONS = 'actions'


@dataclass(frozen=True, slots=True)
class EvidenceArtifact:
    """A single piece of captured evidence."""

    artifact_type: ArtifactType
    step_number: int
    description: str
    file_path: str  # Relative to output directory.
    timestamp: str  # ISO-8601
    scenario_id: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            'type': self.artifact_type.value,
            'step': self.step_number,
            'description': self.description,
            'file': self.file_path,
            'timestamp': self.timestamp,
            'scenario_id': self.scenario_id,
            'metadata': self.metadata,
        }


@dataclass(frozen=True, slots=True)
class CaptureConfig:
    """Configuration for evidence capture."""

    output_dir: Path
    screenshot_format: str = 'png'


class ProofSession:
    """Collects evidence artifacts for a single scenario run.

    The scenario sub-directory is created on first capture, so scenarios
    that pass leave nothing behind.
    """

    def __init__(self, config: CaptureConfig, scenario_id: str) -> None:
        self._config = config
        self._scenario_id = scenario_id
        self._artifacts: list[EvidenceArtifact] = []
        self._scenario_dir = config.output_dir / scenario_id
        self._finalized = False

    @property
    def scenario_dir(self) -> Path:
        return self._scenario_dir

    @property
    def scenario_id(self) -> str:
        return self._scenario_id

    @property
    def artifacts(self) -> tuple[EvidenceArtifact, ...]:
        return tuple(self._artifacts)

    def _path(self, filename: str) -> Path:
        self._scenario_dir.mkdir(parents=True, exist_ok=True)
        return self._scenario_dir / filename

    def _register(
        self,
        artifact_type: ArtifactType,
        *,
        step: int,
        description: str,
        path: Path,
        metadata: dict[str, Any] | None = None,
    ) -> EvidenceArtifact:
        artifact = EvidenceArtifact(
            artifact_type=artifact_type,
            step_number=step,
            description=description,
            file_path=str(path.relative_to(self._config.output_dir)),
            timestamp=_now_iso(),
            scenario_id=self._scenario_id,
            metadata=metadata or {},
        )
        self._artifacts.append(artifact)
        log.info(
            'evidence_captured',
            type=artifact_type.value,
            step=step,
            file=artifact.file_path,
        )
        return artifact

    def record_html(
        self,
        *,
        step: int,
        description: str,
        html: str,
        url: str | None = None,
    ) -> EvidenceArtifact:
        path = self._path(f'step{step:02d}_page.html')
        path.write_text(html, encoding='utf-8')
        return self._register(
            ArtifactType.HTML,
            step=step,
            description=description,
            path=path,
            metadata={'url': url},
        )

    def record_actions(
        self,
        *,
        step: int,
        description: str,
        actions: Iterable[dict[str, Any]],
    ) -> EvidenceArtifact:
        path = self._path(f'step{step:02d}_actions.json')
        path.write_text(json.dumps(list(actions), indent=2), encoding='utf-8')
        return self._register(
            ArtifactType.ACTIONS,
            step=step,
            description=description,
            path=path,
        )

    async def capture_screenshot(
        self,
        *,
        step: int,
        description: str,
        driver: BrowserDriver,
    ) -> EvidenceArtifact | None:
        """Screenshot the current page, or return None if the driver can't."""
        fmt = self._config.screenshot_format
        path = self._path(f'step{step:02d}_screenshot.{fmt}')
        try:
            await driver.screenshot(path)
        except DriverNotSupported:
            return None
        return self._register(
            ArtifactType.SCREENSHOT,
            step=step,
            description=description,
            path=path,
            metadata={'url': driver.current_url, 'format': fmt},
        )

    async def capture_page(
        self,
        *,
        step: int,
        description: str,
        driver: BrowserDriver,
    ) -> list[EvidenceArtifact]:
        """Save the page HTML and, where supported, a screenshot.

        Nothing is captured when no page has been loaded yet.
        """
        if driver.current_url is None:
            return []
        doc = await driver.document()
        captured = [self.record_html(
            step=step,
            description=description,
            html=str(doc),
            url=driver.current_url,
        )]
        screenshot = await self.capture_screenshot(
            step=step, description=description, driver=driver,
        )
        if screenshot is not None:
            captured.append(screenshot)
        return captured

    def finalize(self) -> tuple[EvidenceArtifact, ...]:
        """Return all collected artifacts and write the manifest.

        No manifest is written when nothing was captured.
        """
        if self._finalized or not self._artifacts:
            self._finalized = True
            return tuple(self._artifacts)

        manifest_path = self._path('manifest.json')
        manifest = {
            'scenario_id': self._scenario_id,
            'artifact_count': len(self._artifacts),
            'finalized_at': _now_iso(),
            'artifacts': [a.to_dict() for a in self._artifacts],
        }
        manifest_path.write_text(
            json.dumps(manifest, indent=2), encoding='utf-8',
        )
        self._finalized = True
        return tuple(self._artifacts)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
