"""Render use cases into Markdown views and the corpus overview.

A view is rendered from a flat context: the use case's own attributes, then
its methodology field bag and its extra bag promoted to the top level, the
resolved field schema under ``field_schema`` and a ``generated_at`` stamp.
Every view starts with a YAML front-matter block describing the record it
was rendered from.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import yaml

from mucm.errors import Diagnostic, MissingRequiredFieldError
from mucm.models import (
    Condition,
    Priority,
    Scenario,
    Status,
    UseCase,
    View,
    utcnow,
)
from mucm.schema import FieldDefinition, SchemaRegistry
from mucm.templates import TemplateRegistry

GENERATED_AT_KEY = "generated_at"
FIELD_SCHEMA_KEY = "field_schema"


def format_timestamp(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    return moment.isoformat()


def generated_stamp(moment: datetime) -> str:
    """Wall-clock stamp at second precision."""
    return moment.replace(microsecond=0).isoformat()


def _is_set(value: Any) -> bool:
    return value is not None and value != "" and value != [] and value != {}


def _condition_context(condition: Condition) -> dict[str, Any]:
    return {
        "text": condition.text,
        "target_type": condition.target_type.value if condition.target_type else None,
        "target_id": condition.target_id,
        "relationship": condition.relationship,
        "display": str(condition),
    }


def scenario_context(scenario: Scenario) -> dict[str, Any]:
    return {
        "id": scenario.id,
        "title": scenario.title,
        "description": scenario.description,
        "type": scenario.scenario_type.value,
        "status": scenario.status.value,
        "status_emoji": scenario.status.emoji,
        "persona": scenario.persona,
        "actors": scenario.actors(),
        "steps": [
            {
                "order": s.order,
                "actor": s.actor,
                "receiver": s.receiver,
                "description": s.description,
                "expected_result": s.expected_result,
            }
            for s in scenario.steps
        ],
        "preconditions": [_condition_context(c) for c in scenario.preconditions],
        "postconditions": [_condition_context(c) for c in scenario.postconditions],
        "references": [
            {
                "target_type": r.target_type.value,
                "target_id": r.target_id,
                "relationship": r.relationship,
                "description": r.description,
            }
            for r in scenario.references
        ],
        "version": scenario.metadata.version,
    }


def base_context(use_case: UseCase) -> dict[str, Any]:
    """Top-level attributes of the use case in template-friendly form."""
    status = use_case.status
    return {
        "id": use_case.id,
        "title": use_case.title,
        "category": use_case.category,
        "description": use_case.description,
        "priority": use_case.priority.value,
        "status": status.value,
        "status_emoji": status.emoji,
        "created_at": format_timestamp(use_case.metadata.created_at),
        "updated_at": format_timestamp(use_case.metadata.updated_at),
        "version": use_case.metadata.version,
        "metadata": {
            "created_at": format_timestamp(use_case.metadata.created_at),
            "updated_at": format_timestamp(use_case.metadata.updated_at),
            "version": use_case.metadata.version,
        },
        "views": [{"methodology": v.methodology, "level": v.level} for v in use_case.views],
        "scenarios": [scenario_context(s) for s in use_case.scenarios],
        "preconditions": [_condition_context(c) for c in use_case.preconditions],
        "postconditions": [_condition_context(c) for c in use_case.postconditions],
        "references": [
            {"target_id": r.target_id, "relationship": r.relationship, "description": r.description}
            for r in use_case.references
        ],
    }


def front_matter(use_case: UseCase, view: View, generated_at: str) -> str:
    data = {
        "id": use_case.id,
        "title": use_case.title,
        "category": use_case.category,
        "priority": use_case.priority.value,
        "status": use_case.status.value,
        "methodology": view.methodology,
        "level": view.level,
        "version": use_case.metadata.version,
        "created_at": format_timestamp(use_case.metadata.created_at),
        "updated_at": format_timestamp(use_case.metadata.updated_at),
        GENERATED_AT_KEY: generated_at,
    }
    body = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"---\n{body}---\n\n"


@dataclass
class RenderContext:
    values: dict[str, Any]
    warnings: list[Diagnostic] = field(default_factory=list)


@dataclass
class RenderedView:
    view: View
    text: str
    warnings: list[Diagnostic] = field(default_factory=list)


class Renderer:
    """Compose use case, field schema and template into Markdown.

    With ``strict`` a required field that has neither a value nor a default
    raises :class:`MissingRequiredFieldError`; otherwise it is reported as a
    warning and rendering continues.
    """

    def __init__(
        self,
        schema: SchemaRegistry,
        templates: TemplateRegistry,
        strict: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.schema = schema
        self.templates = templates
        self.strict = strict
        self.clock = clock

    def build_context(
        self, use_case: UseCase, view: View, generated_at: str | None = None
    ) -> RenderContext:
        values = base_context(use_case)
        warnings: list[Diagnostic] = []
        definition = self.schema.get(view.methodology)
        level = self.schema.level(view.methodology, view.level)
        values["methodology"] = definition.name
        values["level"] = level.key
        values["view"] = {
            "methodology": definition.name,
            "title": definition.title,
            "level": level.key,
            "level_name": level.name,
        }
        standard = set(values)

        bag = use_case.methodology_fields.get(view.methodology, {})
        for key, value in bag.items():
            if key in standard and _is_set(values.get(key)):
                values[f"methodology_{key}"] = value
            else:
                values[key] = value

        for key, value in use_case.extra.items():
            if key in values and _is_set(values[key]):
                values[f"extra_{key}"] = value
            else:
                values[key] = value

        template_name = self.templates.view_template_name(view.methodology, view.level)
        schema_entries: list[dict[str, Any]] = []
        for field_def in self.schema.fields_for(view.methodology, view.level):
            value = bag.get(field_def.name)
            if not _is_set(value):
                value = field_def.default_value()
                if value is not None and not _is_set(values.get(field_def.name)):
                    values[field_def.name] = value
            if field_def.required and not _is_set(value):
                if self.strict:
                    raise MissingRequiredFieldError(template_name, field_def.name)
                warnings.append(
                    Diagnostic(
                        "missing_required_field",
                        f"Required field '{field_def.name}' has no value",
                        f"{use_case.id} ({view.key})",
                    )
                )
            entry = field_def.to_dict()
            entry["value"] = value
            schema_entries.append(entry)
        values[FIELD_SCHEMA_KEY] = schema_entries
        values[GENERATED_AT_KEY] = generated_at or generated_stamp(self.clock())
        return RenderContext(values, warnings)

    def render_view(self, use_case: UseCase, view: View) -> RenderedView:
        context = self.build_context(use_case, view)
        template = self.templates.view_template(view.methodology, view.level)
        body = self.templates.render(template, context.values)
        text = front_matter(use_case, view, context.values[GENERATED_AT_KEY]) + body
        return RenderedView(view, text, context.warnings)

    def overview_context(self, use_cases: Iterable[UseCase], project_name: str) -> dict[str, Any]:
        by_category: dict[str, list[UseCase]] = {}
        for use_case in use_cases:
            by_category.setdefault(use_case.category, []).append(use_case)

        categories = []
        status_counts = {s.value: 0 for s in Status}
        priority_counts = {p.value: 0 for p in Priority}
        total = 0
        for name in sorted(by_category):
            entries = []
            for use_case in sorted(by_category[name], key=lambda u: u.id):
                status = use_case.status
                status_counts[status.value] += 1
                priority_counts[use_case.priority.value] += 1
                total += 1
                entries.append(
                    {
                        "id": use_case.id,
                        "title": use_case.title,
                        "aggregated_status": status.value,
                        "status_emoji": status.emoji,
                        "priority": use_case.priority.value,
                        "views": [
                            {
                                "methodology": v.methodology,
                                "level": v.level,
                                "filename": f"{use_case.id}-{v.methodology}-{v.level}.md",
                            }
                            for v in use_case.views
                        ],
                    }
                )
            categories.append({"name": name, "use_cases": entries})
        return {
            "project_name": project_name,
            "total": total,
            "categories": categories,
            "status_counts": status_counts,
            "priority_counts": priority_counts,
            GENERATED_AT_KEY: generated_stamp(self.clock()),
        }

    def render_overview(self, use_cases: Iterable[UseCase], project_name: str) -> str:
        template = self.templates.overview_template()
        return self.templates.render(template, self.overview_context(use_cases, project_name))

    def render_scaffold(self, use_case: UseCase, language: str) -> tuple[str, str]:
        """Test scaffold source for ``use_case`` and its file extension."""
        template, extension = self.templates.test_scaffold_template(language)
        context = base_context(use_case)
        context[GENERATED_AT_KEY] = generated_stamp(self.clock())
        return self.templates.render(template, context), extension


def required_fields_missing(
    fields: Iterable[FieldDefinition], bag: dict[str, Any]
) -> list[str]:
    return [
        f.name for f in fields if f.required and not _is_set(bag.get(f.name)) and f.default is None
    ]
