"""Tests for failure evidence capture."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from storefront_harness.browser.dom import parse_html
from storefront_harness.errors import DriverNotSupported
from storefront_harness.scenarios.evidence import (
    ArtifactType,
    CaptureConfig,
    ProofSession,
)


def _driver(*, url='http://shop.test/products', screenshot=None):
    driver = MagicMock()
    driver.name = 'fake'
    driver.current_url = url
    driver.document = AsyncMock(return_value=parse_html('<p>Listing</p>'))
    if screenshot is None:
        driver.screenshot = AsyncMock(side_effect=DriverNotSupported('fake', 'screenshot'))
    else:
        driver.screenshot = AsyncMock(side_effect=screenshot)
    return driver


@pytest.fixture
def proof(tmp_path: Path) -> ProofSession:
    return ProofSession(CaptureConfig(output_dir=tmp_path), 'products-004')


class TestProofSession:

    def test_directory_created_lazily(self, proof: ProofSession):
        assert not proof.scenario_dir.exists()
        assert proof.finalize() == ()
        assert not proof.scenario_dir.exists()

    def test_record_html(self, proof: ProofSession):
        artifact = proof.record_html(step=3, description='search', html='<html/>', url='http://x/')
        assert artifact.artifact_type == ArtifactType.HTML
        assert artifact.file_path == 'products-004/step03_page.html'
        assert artifact.metadata == {'url': 'http://x/'}
        assert (proof.scenario_dir / 'step03_page.html').read_text() == '<html/>'

    def test_record_actions(self, proof: ProofSession):
        proof.record_actions(step=1, description='visit', actions=[{'action': 'visit'}])
        data = json.loads((proof.scenario_dir / 'step01_actions.json').read_text())
        assert data == [{'action': 'visit'}]

    @pytest.mark.asyncio
    async def test_capture_page_without_screenshot_support(self, proof: ProofSession):
        artifacts = await proof.capture_page(step=2, description='d', driver=_driver())
        assert [a.artifact_type for a in artifacts] == [ArtifactType.HTML]
        assert 'Listing' in (proof.scenario_dir / 'step02_page.html').read_text()

    @pytest.mark.asyncio
    async def test_capture_page_with_screenshot(self, proof: ProofSession):
        async def shoot(path):
            path.write_bytes(b'png')
            return path

        artifacts = await proof.capture_page(step=2, description='d', driver=_driver(screenshot=shoot))
        assert [a.artifact_type for a in artifacts] == [ArtifactType.HTML, ArtifactType.SCREENSHOT]
        assert artifacts[1].file_path == 'products-004/step02_screenshot.png'
        assert artifacts[1].metadata['format'] == 'png'

    @pytest.mark.asyncio
    async def test_nothing_captured_before_first_page(self, proof: ProofSession):
        assert await proof.capture_page(step=1, description='d', driver=_driver(url=None)) == []

    def test_finalize_writes_manifest_once(self, proof: ProofSession):
        proof.record_html(step=1, description='d', html='<p/>')
        artifacts = proof.finalize()
        manifest = json.loads((proof.scenario_dir / 'manifest.json').read_text())
        assert manifest['scenario_id'] == 'products-004'
        assert manifest['artifact_count'] == 1
        assert manifest['artifacts'][0]['type'] == 'html'
        assert proof.finalize() == artifacts
