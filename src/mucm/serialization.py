"""Convert models to and from their canonical TOML source records.

Each record is first mapped to plain dicts, then written with ``tomli_w`` and
read back with ``tomllib``. Keys this module does not know about are kept
in the ``extra`` mapping of the nearest model object and written back in
place, so hand-edited records survive a load/save cycle.
"""

from __future__ import annotations

import tomllib
from datetime import datetime
from typing import Any

import tomli_w

from mucm.errors import SerializationError
from mucm.models import (
    Actor,
    Condition,
    Metadata,
    Scenario,
    ScenarioReference,
    Step,
    UseCase,
    UseCaseReference,
    View,
    split_extra,
)

_METADATA_KEYS = ("created_at", "updated_at", "version")
_VIEW_KEYS = ("methodology", "level")
_STEP_KEYS = ("order", "actor", "receiver", "description", "expected_result")
_CONDITION_KEYS = ("text", "target_type", "target_id", "relationship")
_UC_REF_KEYS = ("target_id", "relationship", "description")
_SCENARIO_REF_KEYS = ("target_type", "target_id", "relationship", "description")
_SCENARIO_KEYS = (
    "id",
    "title",
    "description",
    "type",
    "status",
    "persona",
    "metadata",
    "preconditions",
    "postconditions",
    "steps",
    "references",
)
_USE_CASE_KEYS = (
    "id",
    "title",
    "category",
    "description",
    "priority",
    "metadata",
    "views",
    "methodology_fields",
    "preconditions",
    "postconditions",
    "references",
    "scenarios",
)
_ACTOR_KEYS = ("id", "name", "kind", "emoji", "fields", "metadata")


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` values; TOML has no null."""
    return {k: v for k, v in data.items() if v is not None}


def _with_extra(data: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = _compact(data)
    for key, value in extra.items():
        merged.setdefault(key, value)
    return merged


def _unknown(data: dict[str, Any], known: tuple[str, ...]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in known}


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise SerializationError(f"{where}: missing required key '{key}'")
    return data[key]


def _timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise SerializationError(f"Invalid timestamp: {value!r}") from None


# -- to dict ---------------------------------------------------------------


def metadata_to_dict(metadata: Metadata) -> dict[str, Any]:
    return _with_extra(
        {
            "created_at": metadata.created_at,
            "updated_at": metadata.updated_at,
            "version": metadata.version,
        },
        metadata.extra,
    )


def condition_to_dict(condition: Condition) -> dict[str, Any]:
    return _with_extra(
        {
            "text": condition.text,
            "target_type": condition.target_type.value if condition.target_type else None,
            "target_id": condition.target_id,
            "relationship": condition.relationship,
        },
        condition.extra,
    )


def step_to_dict(step: Step) -> dict[str, Any]:
    return _with_extra(
        {
            "order": step.order,
            "actor": step.actor,
            "receiver": step.receiver,
            "description": step.description,
            "expected_result": step.expected_result,
        },
        step.extra,
    )


def scenario_to_dict(scenario: Scenario) -> dict[str, Any]:
    return _with_extra(
        {
            "id": scenario.id,
            "title": scenario.title,
            "description": scenario.description,
            "type": scenario.scenario_type.value,
            "status": scenario.status.value,
            "persona": scenario.persona,
            "metadata": metadata_to_dict(scenario.metadata),
            "preconditions": [condition_to_dict(c) for c in scenario.preconditions],
            "postconditions": [condition_to_dict(c) for c in scenario.postconditions],
            "steps": [step_to_dict(s) for s in scenario.steps],
            "references": [
                _with_extra(
                    {
                        "target_type": r.target_type.value,
                        "target_id": r.target_id,
                        "relationship": r.relationship,
                        "description": r.description,
                    },
                    r.extra,
                )
                for r in scenario.references
            ],
        },
        scenario.extra,
    )


def use_case_to_dict(use_case: UseCase) -> dict[str, Any]:
    """Canonical record layout; extra fields sit beside the standard keys."""
    data: dict[str, Any] = {
        "id": use_case.id,
        "title": use_case.title,
        "category": use_case.category,
        "description": use_case.description,
        "priority": use_case.priority.value,
    }
    data.update(use_case.extra)
    data.update(use_case.preserved)
    data["metadata"] = metadata_to_dict(use_case.metadata)
    data["views"] = [
        _with_extra({"methodology": v.methodology, "level": v.level}, v.extra)
        for v in use_case.views
    ]
    data["methodology_fields"] = {m: dict(bag) for m, bag in use_case.methodology_fields.items()}
    data["preconditions"] = [condition_to_dict(c) for c in use_case.preconditions]
    data["postconditions"] = [condition_to_dict(c) for c in use_case.postconditions]
    data["references"] = [
        _with_extra(
            {
                "target_id": r.target_id,
                "relationship": r.relationship,
                "description": r.description,
            },
            r.extra,
        )
        for r in use_case.references
    ]
    data["scenarios"] = [scenario_to_dict(s) for s in use_case.scenarios]
    return data


def actor_to_dict(actor: Actor) -> dict[str, Any]:
    return {
        "id": actor.id,
        "name": actor.name,
        "kind": actor.kind.value,
        "emoji": actor.emoji,
        "fields": dict(actor.fields),
        "metadata": metadata_to_dict(actor.metadata),
    }


# -- from dict -------------------------------------------------------------


def metadata_from_dict(data: dict[str, Any] | None) -> Metadata:
    data = data or {}
    version = data.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise SerializationError(f"metadata.version must be a positive integer, got {version!r}")
    return Metadata(
        created_at=_timestamp(data.get("created_at")),
        updated_at=_timestamp(data.get("updated_at")),
        version=version,
        extra=_unknown(data, _METADATA_KEYS),
    )


def condition_from_dict(data: dict[str, Any] | str) -> Condition:
    if isinstance(data, str):
        return Condition(text=data)
    return Condition(
        text=_require(data, "text", "condition"),
        target_type=data.get("target_type"),
        target_id=data.get("target_id"),
        relationship=data.get("relationship"),
        extra=_unknown(data, _CONDITION_KEYS),
    )


def step_from_dict(data: dict[str, Any]) -> Step:
    return Step(
        order=int(_require(data, "order", "step")),
        actor=_require(data, "actor", "step"),
        description=_require(data, "description", "step"),
        receiver=data.get("receiver"),
        expected_result=data.get("expected_result"),
        extra=_unknown(data, _STEP_KEYS),
    )


def scenario_from_dict(data: dict[str, Any]) -> Scenario:
    where = f"scenario {data.get('id', '?')}"
    return Scenario(
        id=_require(data, "id", where),
        title=_require(data, "title", where),
        description=data.get("description", ""),
        scenario_type=data.get("type", "main"),
        status=data.get("status", "planned"),
        persona=data.get("persona"),
        steps=[step_from_dict(s) for s in data.get("steps", [])],
        preconditions=[condition_from_dict(c) for c in data.get("preconditions", [])],
        postconditions=[condition_from_dict(c) for c in data.get("postconditions", [])],
        references=[
            ScenarioReference(
                target_type=_require(r, "target_type", where),
                target_id=_require(r, "target_id", where),
                relationship=_require(r, "relationship", where),
                description=r.get("description"),
                extra=_unknown(r, _SCENARIO_REF_KEYS),
            )
            for r in data.get("references", [])
        ],
        metadata=metadata_from_dict(data.get("metadata")),
        extra=_unknown(data, _SCENARIO_KEYS),
    )


def use_case_from_dict(data: dict[str, Any]) -> UseCase:
    where = f"use case {data.get('id', '?')}"
    views = data.get("views", [])
    if not isinstance(views, list):
        raise SerializationError(f"{where}: 'views' must be an array")
    methodology_fields = data.get("methodology_fields", {})
    if not isinstance(methodology_fields, dict):
        raise SerializationError(f"{where}: 'methodology_fields' must be a table")
    extra, preserved = split_extra(_unknown(data, _USE_CASE_KEYS))
    return UseCase(
        id=_require(data, "id", where),
        title=_require(data, "title", where),
        category=_require(data, "category", where),
        description=data.get("description", ""),
        priority=data.get("priority", "medium"),
        metadata=metadata_from_dict(data.get("metadata")),
        views=[
            View(
                methodology=_require(v, "methodology", where),
                level=_require(v, "level", where),
                extra=_unknown(v, _VIEW_KEYS),
            )
            for v in views
        ],
        methodology_fields={m: dict(bag) for m, bag in methodology_fields.items()},
        preconditions=[condition_from_dict(c) for c in data.get("preconditions", [])],
        postconditions=[condition_from_dict(c) for c in data.get("postconditions", [])],
        references=[
            UseCaseReference(
                target_id=_require(r, "target_id", where),
                relationship=_require(r, "relationship", where),
                description=r.get("description"),
                extra=_unknown(r, _UC_REF_KEYS),
            )
            for r in data.get("references", [])
        ],
        scenarios=[scenario_from_dict(s) for s in data.get("scenarios", [])],
        extra=extra,
        preserved=preserved,
    )


def actor_from_dict(data: dict[str, Any]) -> Actor:
    where = f"actor {data.get('id', '?')}"
    return Actor(
        id=_require(data, "id", where),
        name=_require(data, "name", where),
        kind=data.get("kind", "persona"),
        emoji=data.get("emoji", "🙂"),
        fields=dict(data.get("fields", {})),
        metadata=metadata_from_dict(data.get("metadata")),
    )


# -- text ------------------------------------------------------------------


def _dumps(data: dict[str, Any]) -> str:
    try:
        return tomli_w.dumps(data)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Cannot serialize record: {exc}") from exc


def _loads(text: str) -> dict[str, Any]:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise SerializationError(f"Invalid TOML: {exc}") from exc


def dumps_use_case(use_case: UseCase) -> str:
    return _dumps(use_case_to_dict(use_case))


def loads_use_case(text: str) -> UseCase:
    return use_case_from_dict(_loads(text))


def dumps_actor(actor: Actor) -> str:
    return _dumps(actor_to_dict(actor))


def loads_actor(text: str) -> Actor:
    return actor_from_dict(_loads(text))
