"""Shared test fixtures for the HLS converter."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeClock, ScriptedEngine, available_engine

from hlsconv.conversion.artifacts import ArtifactStore
from hlsconv.conversion.orchestrator import ConversionOrchestrator
from hlsconv.conversion.registry import JobRegistry


@pytest.fixture
def downloads_dir(tmp_path: Path) -> Path:
    """Empty downloads directory."""
    path = tmp_path / "downloads"
    path.mkdir()
    return path


@pytest.fixture
def store(downloads_dir: Path) -> ArtifactStore:
    return ArtifactStore(downloads_dir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> JobRegistry:
    return JobRegistry(expiry_seconds=600, clock=clock)


@pytest.fixture
def engine() -> ScriptedEngine:
    return ScriptedEngine()


@pytest.fixture
def orchestrator(
    registry: JobRegistry,
    store: ArtifactStore,
    engine: ScriptedEngine,
) -> ConversionOrchestrator:
    """Orchestrator wired to a scripted engine with sequential job ids."""
    ids = iter(f"job{n}" for n in range(1, 1000))
    return ConversionOrchestrator(
        registry=registry,
        store=store,
        engine=engine,
        availability=available_engine(),
        id_factory=lambda: next(ids),
    )
