"""Methodology definitions: levels, typed fields and level inheritance.

A templates root holds one ``methodologies/<name>/methodology.toml`` per
methodology::

    [methodology]
    name = "business"
    title = "Business Analysis"
    description = "..."

    [usage]
    when_to_use = ["..."]
    key_features = ["..."]

    [levels.normal]
    name = "Normal"
    abbreviation = "N"
    filename = "uc_normal.md.j2"
    description = "..."
    inherits = []

    [levels.normal.custom_fields.business_value]
    type = "string"
    required = true
    label = "Business Value"

Definitions that fail to load are skipped and reported as warnings; the
rest of the registry stays usable.
"""

from __future__ import annotations

import tomllib
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import networkx as nx
import structlog

from mucm.errors import (
    Diagnostic,
    InheritanceCycleError,
    MalformedDefinitionError,
    MucmError,
    NotFoundError,
    TypeMismatchError,
)
from mucm.models import RESERVED_KEYS, FieldValue, View

log = structlog.get_logger(__name__)

DEFINITION_FILE = "methodology.toml"
FIELD_TYPES = ("string", "text", "number", "boolean", "array")
_TYPE_ALIASES = {
    "str": "string",
    "int": "number",
    "integer": "number",
    "float": "number",
    "bool": "boolean",
    "list": "array",
    "array-of-string": "array",
    "array_of_string": "array",
}
# Levels that were renamed; old records and scripts may still use these.
LEGACY_LEVEL_NAMES = {"simple": "normal", "detailed": "advanced"}
# Methodology fields cannot shadow these use case attributes.
STANDARD_FIELDS = RESERVED_KEYS | {"status", "views", "generated_at"}

_TRUE = {"true", "yes", "y", "1", "on"}
_FALSE = {"false", "no", "n", "0", "off"}


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    field_type: str = "string"
    required: bool = False
    default: str | None = None
    label: str | None = None
    description: str | None = None

    @property
    def display_label(self) -> str:
        return self.label or self.name.replace("_", " ").title()

    def default_value(self) -> FieldValue | None:
        """The declared default parsed per the field's type, or None."""
        if self.default is None:
            return None
        return coerce_field_value(self, self.default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.field_type,
            "required": self.required,
            "default": self.default,
            "label": self.display_label,
            "description": self.description or "",
        }


@dataclass
class LevelDefinition:
    key: str
    name: str
    abbreviation: str
    filename: str
    description: str = ""
    inherits: list[str] = field(default_factory=list)
    fields: dict[str, FieldDefinition] = field(default_factory=dict)


@dataclass
class MethodologyDefinition:
    name: str
    title: str
    description: str
    levels: dict[str, LevelDefinition]
    when_to_use: list[str] = field(default_factory=list)
    key_features: list[str] = field(default_factory=list)
    default_level: str = ""
    path: Path | None = None

    def __post_init__(self) -> None:
        if not self.default_level and self.levels:
            self.default_level = next(iter(self.levels))


@dataclass
class FieldCollection:
    """Fields declared by a set of views, keyed by field name."""

    fields_by_name: dict[str, FieldDefinition] = field(default_factory=dict)
    methodology_of: dict[str, str] = field(default_factory=dict)
    warnings: list[Diagnostic] = field(default_factory=list)

    def for_methodology(self, methodology: str) -> list[FieldDefinition]:
        return [
            d for name, d in self.fields_by_name.items() if self.methodology_of[name] == methodology
        ]


# -- value coercion --------------------------------------------------------


def coerce_field_value(definition: FieldDefinition, value: Any) -> FieldValue:
    """Convert ``value`` to the field's declared type.

    Strings are parsed (numbers, yes/no style booleans, comma separated
    arrays); values already of the right kind pass through. Anything else
    raises :class:`TypeMismatchError`.
    """
    kind = definition.field_type
    if kind in ("string", "text"):
        if isinstance(value, str):
            return value
    elif kind == "number":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                return float(text)
            except ValueError:
                pass
    elif kind == "boolean":
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
    elif kind == "array":
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return list(value)
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
    raise TypeMismatchError(definition.name, kind, value)


def value_matches(definition: FieldDefinition, value: Any) -> bool:
    """Whether a stored value already has the declared type (no parsing)."""
    kind = definition.field_type
    if kind in ("string", "text"):
        return isinstance(value, str)
    if kind == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == "boolean":
        return isinstance(value, bool)
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


# -- loading ---------------------------------------------------------------


def _field_from_dict(name: str, data: Any, where: str) -> FieldDefinition:
    if not isinstance(data, dict):
        raise MalformedDefinitionError(f"{where}: field '{name}' must be a table")
    raw_type = str(data.get("type", "string")).lower()
    field_type = _TYPE_ALIASES.get(raw_type, raw_type)
    if field_type not in FIELD_TYPES:
        raise MalformedDefinitionError(f"{where}: field '{name}' has unknown type '{raw_type}'")
    default = data.get("default")
    if default is not None and not isinstance(default, str):
        raise MalformedDefinitionError(f"{where}: default of field '{name}' must be a string")
    definition = FieldDefinition(
        name=name,
        field_type=field_type,
        required=bool(data.get("required", False)),
        default=default,
        label=data.get("label"),
        description=data.get("description"),
    )
    if default is not None:
        try:
            definition.default_value()
        except TypeMismatchError:
            raise MalformedDefinitionError(
                f"{where}: default '{default}' of field '{name}' is not a valid {field_type}"
            ) from None
    return definition


def _level_from_dict(key: str, data: Any, where: str) -> LevelDefinition:
    if not isinstance(data, dict):
        raise MalformedDefinitionError(f"{where}: level '{key}' must be a table")
    inherits = data.get("inherits", [])
    if isinstance(inherits, str):
        inherits = [inherits]
    fields = data.get("custom_fields", {})
    if not isinstance(fields, dict):
        raise MalformedDefinitionError(f"{where}: custom_fields of '{key}' must be a table")
    return LevelDefinition(
        key=key,
        name=data.get("name", key.title()),
        abbreviation=data.get("abbreviation", key[:1].upper()),
        filename=data.get("filename", f"uc_{key}.md.j2"),
        description=data.get("description", ""),
        inherits=[str(parent) for parent in inherits],
        fields={
            name: _field_from_dict(name, spec, f"{where} level '{key}'")
            for name, spec in fields.items()
        },
    )


def check_inheritance(definition: MethodologyDefinition) -> None:
    """Raise if a level inherits from an unknown level or the graph has a cycle."""
    graph = nx.DiGraph()
    graph.add_nodes_from(definition.levels)
    for level in definition.levels.values():
        for parent in level.inherits:
            if parent not in definition.levels:
                raise MalformedDefinitionError(
                    f"Methodology '{definition.name}': level '{level.key}' "
                    f"inherits from unknown level '{parent}'"
                )
            graph.add_edge(level.key, parent)
    try:
        cycle = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        return
    path = [edge[0] for edge in cycle] + [cycle[0][0]]
    raise InheritanceCycleError(definition.name, path)


def load_definition(methodology_dir: Path) -> MethodologyDefinition:
    """Load one methodology directory. Raises MalformedDefinitionError."""
    path = methodology_dir / DEFINITION_FILE
    where = str(path)
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise MalformedDefinitionError(f"{where}: cannot read definition ({exc})") from exc
    except tomllib.TOMLDecodeError as exc:
        raise MalformedDefinitionError(f"{where}: invalid TOML ({exc})") from exc

    meta = data.get("methodology", {})
    if not isinstance(meta, dict):
        raise MalformedDefinitionError(f"{where}: [methodology] must be a table")
    name = str(meta.get("name", methodology_dir.name)).lower()
    levels_data = data.get("levels", {})
    if not isinstance(levels_data, dict) or not levels_data:
        raise MalformedDefinitionError(f"{where}: at least one [levels.<name>] table is required")
    levels = {
        key.lower(): _level_from_dict(key.lower(), spec, where) for key, spec in levels_data.items()
    }
    usage = data.get("usage", {})
    default_level = str(meta.get("default_level", "")).lower()
    if default_level and default_level not in levels:
        raise MalformedDefinitionError(f"{where}: default_level '{default_level}' is not a level")

    definition = MethodologyDefinition(
        name=name,
        title=meta.get("title", name.title()),
        description=meta.get("description", ""),
        levels=levels,
        when_to_use=list(usage.get("when_to_use", [])),
        key_features=list(usage.get("key_features", [])),
        default_level=default_level,
        path=methodology_dir,
    )
    check_inheritance(definition)
    return definition


# -- registry --------------------------------------------------------------


class SchemaRegistry:
    """Loaded methodology definitions. Pure lookups after :meth:`load`."""

    def __init__(self, templates_root: Path) -> None:
        self.templates_root = templates_root
        self.definitions: dict[str, MethodologyDefinition] = {}
        self.warnings: list[Diagnostic] = []
        self._field_cache: dict[tuple[str, str], list[FieldDefinition]] = {}

    @classmethod
    def from_directory(cls, templates_root: Path) -> SchemaRegistry:
        registry = cls(templates_root)
        registry.load()
        return registry

    def load(self) -> None:
        self.definitions.clear()
        self.warnings.clear()
        self._field_cache.clear()
        root = self.templates_root / "methodologies"
        if not root.is_dir():
            log.warning("no methodologies directory", path=str(root))
            return
        for methodology_dir in sorted(p for p in root.iterdir() if p.is_dir()):
            if not (methodology_dir / DEFINITION_FILE).exists():
                continue
            try:
                definition = load_definition(methodology_dir)
            except MalformedDefinitionError as exc:
                log.warning("skipping methodology definition", path=str(methodology_dir), error=str(exc))
                self.warnings.append(Diagnostic(exc.code, str(exc), methodology_dir.name))
                continue
            self.definitions[definition.name] = definition
        log.debug("methodologies loaded", names=sorted(self.definitions))

    # -- lookups

    def names(self) -> list[str]:
        return sorted(self.definitions)

    def get(self, methodology: str) -> MethodologyDefinition:
        try:
            return self.definitions[methodology.lower()]
        except KeyError:
            available = ", ".join(self.names()) or "none"
            raise NotFoundError(
                f"Unknown methodology '{methodology}'. Available: {available}",
                code="methodology_not_found",
            ) from None

    def discover(self, methodology: str) -> list[LevelDefinition]:
        return list(self.get(methodology).levels.values())

    def resolve_level(self, methodology: str, level: str) -> str:
        """Map a level key, display name, abbreviation or legacy name to its key."""
        definition = self.get(methodology)
        wanted = level.strip().lower()
        if wanted in definition.levels:
            return wanted
        for key, candidate in definition.levels.items():
            if wanted in (candidate.name.lower(), candidate.abbreviation.lower()):
                return key
        legacy = LEGACY_LEVEL_NAMES.get(wanted)
        if legacy in definition.levels:
            return legacy
        raise NotFoundError(
            f"Methodology '{definition.name}' has no level '{level}'. "
            f"Available: {', '.join(definition.levels)}",
            code="level_not_found",
        )

    def level(self, methodology: str, level: str) -> LevelDefinition:
        definition = self.get(methodology)
        return definition.levels[self.resolve_level(methodology, level)]

    def default_view(self, methodology: str) -> View:
        definition = self.get(methodology)
        return View(definition.name, definition.default_level)

    def fields_for(self, methodology: str, level: str) -> list[FieldDefinition]:
        """Own fields of the level followed by inherited ones, depth first.

        When two levels declare the same name the first one seen (the most
        derived) wins.
        """
        definition = self.get(methodology)
        key = self.resolve_level(methodology, level)
        cache_key = (definition.name, key)
        if cache_key in self._field_cache:
            return list(self._field_cache[cache_key])

        resolved: dict[str, FieldDefinition] = {}
        visited: set[str] = set()

        def visit(level_key: str) -> None:
            if level_key in visited:
                return
            visited.add(level_key)
            current = definition.levels[level_key]
            for name, field_def in current.fields.items():
                resolved.setdefault(name, field_def)
            for parent in current.inherits:
                visit(parent)

        visit(key)
        self._field_cache[cache_key] = list(resolved.values())
        return list(resolved.values())

    def collect_fields_for_views(self, views: Iterable[View]) -> FieldCollection:
        collection = FieldCollection()
        for view in views:
            if view.methodology not in self.definitions:
                collection.warnings.append(
                    Diagnostic("unknown_methodology", f"Methodology '{view.methodology}' is not installed")
                )
                continue
            try:
                fields = self.fields_for(view.methodology, view.level)
            except MucmError as exc:
                collection.warnings.append(Diagnostic("unresolved_level", str(exc), view.key))
                continue
            for definition in fields:
                if definition.name in STANDARD_FIELDS:
                    collection.warnings.append(
                        Diagnostic(
                            "standard_field_collision",
                            f"Field '{definition.name}' shadows a use case attribute and is skipped",
                            view.methodology,
                        )
                    )
                    continue
                owner = collection.methodology_of.get(definition.name)
                if owner is None:
                    collection.fields_by_name[definition.name] = definition
                    collection.methodology_of[definition.name] = view.methodology
                elif owner != view.methodology:
                    collection.warnings.append(
                        Diagnostic(
                            "field_collision",
                            f"Field '{definition.name}' is declared by both '{owner}' and "
                            f"'{view.methodology}'; using the '{owner}' definition",
                            view.methodology,
                        )
                    )
        return collection
