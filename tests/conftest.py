"""Shared test fixtures for the Attune test suite."""

from collections.abc import Callable, Generator, Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path

import pytest

from attune.config import get_settings
from attune.workflow.controller import SessionPhaseController
from attune.workflow.graph import PhaseGraph, build_graph, load_preset_definition
from attune.workflow.mutex import LocalSessionMutex
from attune.workflow.stores import InMemorySessionStateStore
from tests.factories import FakeClock


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Empty config directory under the test's tmp path."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Write ``{filename: content}`` TOML files into the test config directory."""

    def _write(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _write


@pytest.fixture
def env_override() -> Callable[[dict[str, str]], AbstractContextManager[None]]:
    """Temporarily set environment variables inside a ``with`` block.

    Usage:
        with env_override({"ATTUNE_DEBUG": "true"}):
            ...
    """

    @contextmanager
    def _override(overrides: dict[str, str]) -> Iterator[None]:
        with pytest.MonkeyPatch.context() as patch:
            for key, value in overrides.items():
                patch.setenv(key, value)
            yield

    return _override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Drop cached settings around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    """Controllable clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def eight_stage_graph() -> PhaseGraph:
    """The built-in eight-stage graph with default thresholds."""
    return build_graph(load_preset_definition("eight_stage"))


@pytest.fixture
def ten_phase_graph() -> PhaseGraph:
    """The built-in ten-phase graph with default thresholds."""
    return build_graph(load_preset_definition("ten_phase"))


@pytest.fixture
def state_store() -> InMemorySessionStateStore:
    """Empty in-memory session state store."""
    return InMemorySessionStateStore()


@pytest.fixture
def controller(
    eight_stage_graph: PhaseGraph,
    state_store: InMemorySessionStateStore,
    clock: FakeClock,
) -> SessionPhaseController:
    """Controller over the eight-stage graph with a controllable clock."""
    return SessionPhaseController(
        eight_stage_graph,
        state_store,
        mutex=LocalSessionMutex(blocking_timeout=1.0),
        clock=clock,
    )


@pytest.fixture
def ten_phase_controller(
    ten_phase_graph: PhaseGraph,
    state_store: InMemorySessionStateStore,
    clock: FakeClock,
) -> SessionPhaseController:
    """Controller over the ten-phase graph with a controllable clock."""
    return SessionPhaseController(
        ten_phase_graph,
        state_store,
        mutex=LocalSessionMutex(blocking_timeout=1.0),
        clock=clock,
    )
