"""Jinja2 template loading for views, the overview and test scaffolds."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import jinja2
import structlog

from mucm.errors import NotFoundError, RenderError
from mucm.schema import SchemaRegistry

log = structlog.get_logger(__name__)

OVERVIEW_TEMPLATE = "overview.md.j2"
PARTIALS_DIR = "partials"
LANGUAGES_DIR = "languages"

_SCAFFOLD_EXTENSIONS = {
    "python": "py",
    "javascript": "js",
    "typescript": "ts",
    "rust": "rs",
    "go": "go",
}


def snake_case(value: str) -> str:
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(value))
    return re.sub(r"[^A-Za-z0-9]+", "_", text).strip("_").lower()


def kebab_case(value: str) -> str:
    return snake_case(value).replace("_", "-")


def capitalise(value: str) -> str:
    text = str(value)
    return text[:1].upper() + text[1:]


def humanize(value: str) -> str:
    return capitalise(str(value).replace("_", " "))


class TemplateRegistry:
    """Templates under a templates root, compiled once per process.

    Layout::

        methodologies/<name>/<level filename>
        partials/<partial>.md.j2
        overview.md.j2
        languages/<language>/test.<ext>.j2
    """

    def __init__(self, templates_root: Path, schema: SchemaRegistry) -> None:
        self.templates_root = templates_root
        self.schema = schema
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(templates_root)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters["snake_case"] = snake_case
        self.env.filters["kebab_case"] = kebab_case
        self.env.filters["capitalise"] = capitalise
        self.env.filters["humanize"] = humanize

    def _load(self, name: str) -> jinja2.Template:
        try:
            return self.env.get_template(name)
        except jinja2.TemplateNotFound as exc:
            log.warning("template not found", template=name, root=str(self.templates_root))
            raise NotFoundError(f"Template not found: {name}", code="template_not_found") from exc
        except jinja2.TemplateSyntaxError as exc:
            raise RenderError(name, f"line {exc.lineno}: {exc.message}") from exc

    def view_template_name(self, methodology: str, level: str) -> str:
        level_def = self.schema.level(methodology, level)
        definition = self.schema.get(methodology)
        return f"methodologies/{definition.name}/{level_def.filename}"

    def view_template(self, methodology: str, level: str) -> jinja2.Template:
        return self._load(self.view_template_name(methodology, level))

    def overview_template(self) -> jinja2.Template:
        return self._load(OVERVIEW_TEMPLATE)

    def partial(self, name: str) -> jinja2.Template:
        return self._load(f"{PARTIALS_DIR}/{name}.md.j2")

    def test_scaffold_template(self, language: str) -> tuple[jinja2.Template, str]:
        """Scaffold template for ``language`` and the file extension it produces."""
        extension = _SCAFFOLD_EXTENSIONS.get(language, language)
        return self._load(f"{LANGUAGES_DIR}/{language}/test.{extension}.j2"), extension

    def render(self, template: jinja2.Template, context: dict[str, Any]) -> str:
        try:
            return template.render(**context)
        except jinja2.TemplateError as exc:
            raise RenderError(template.name or "<template>", str(exc)) from exc
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            raise RenderError(template.name or "<template>", str(exc)) from exc
