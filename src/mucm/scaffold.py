"""Test scaffolds generated from use case scenarios."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mucm.models import UseCase
from mucm.renderer import Renderer
from mucm.store import atomic_write
from mucm.templates import snake_case


@dataclass
class ScaffoldResult:
    path: Path
    written: bool
    code: str


def scaffold_path(test_dir: Path, use_case: UseCase, extension: str) -> Path:
    return test_dir / use_case.category / f"test_{snake_case(use_case.id)}.{extension}"


def generate_scaffold(
    use_case: UseCase,
    renderer: Renderer,
    test_dir: Path,
    language: str,
    overwrite: bool = False,
) -> ScaffoldResult:
    """Render the language's scaffold for ``use_case`` under ``test_dir``.

    Scaffolds are meant to be edited, so an existing file is only replaced
    when ``overwrite`` is set.
    """
    code, extension = renderer.render_scaffold(use_case, language)
    path = scaffold_path(test_dir, use_case, extension)
    if path.exists() and not overwrite:
        return ScaffoldResult(path, False, code)
    atomic_write(path, code)
    return ScaffoldResult(path, True, code)
