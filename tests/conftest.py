"""Shared test fixtures for mucm."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from mucm.config import init_project
from mucm.coordinator import Coordinator
from mucm.schema import SchemaRegistry
from mucm.templates import TemplateRegistry

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project with the bundled template set installed."""
    init_project(tmp_path, name="Test Project")
    return tmp_path


@pytest.fixture
def coordinator(project: Path) -> Coordinator:
    return Coordinator(project, clock=fixed_clock)


@pytest.fixture
def registry(project: Path) -> SchemaRegistry:
    return SchemaRegistry.from_directory(project / ".config" / ".mucm" / "templates")


@pytest.fixture
def templates(project: Path, registry: SchemaRegistry) -> TemplateRegistry:
    return TemplateRegistry(project / ".config" / ".mucm" / "templates", registry)


@pytest.fixture
def login(coordinator: Coordinator) -> str:
    """``User Login`` in the authentication category; returns its id."""
    result = coordinator.create("User Login", "authentication")
    assert result.subject is not None
    return result.subject
