"""Core data models for mucm.

The use case is the top-level document. It owns its scenarios (which own
their steps), its conditions and references, and one field bag per
methodology. Every constructor checks its invariants so that a model object
that exists is a valid one; mutation methods keep them.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Union

from mucm.errors import NotFoundError, StatusTransitionError, ValidationError
from mucm.ids import (
    canonicalize,
    is_scenario_id,
    is_use_case_id,
    mint_scenario_id,
    parse_scenario_id,
)

CATEGORY_RE = re.compile(r"^[a-z0-9]+(?:[-_][a-z0-9]+)*$")
ACTOR_ID_RE = re.compile(r"^[a-z0-9]+(?:[-_][a-z0-9]+)*$")

# A field bag value: string, number, boolean, list of strings or nested mapping.
FieldValue = Union[str, int, float, bool, list[str], dict[str, "FieldValue"]]
FieldBag = dict[str, FieldValue]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -- enumerations ----------------------------------------------------------


@functools.total_ordering
class Priority(Enum):
    """Use case priority. Totally ordered low < medium < high < critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: Priority | str) -> Priority:
        if isinstance(value, Priority):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid priority: '{value}'. Valid options: "
                f"{', '.join(p.value for p in cls)}",
                code="invalid_priority",
            ) from None

    @property
    def rank(self) -> int:
        return list(Priority).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank


class Status(Enum):
    """Scenario status."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    IMPLEMENTED = "implemented"
    TESTED = "tested"
    DEPLOYED = "deployed"
    DEPRECATED = "deprecated"

    @classmethod
    def parse(cls, value: Status | str) -> Status:
        if isinstance(value, Status):
            return value
        normalized = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(
                f"Invalid status: '{value}'. Valid options: "
                f"{', '.join(s.value for s in cls)}",
                code="invalid_status",
            ) from None

    @property
    def label(self) -> str:
        return self.value.upper()

    @property
    def emoji(self) -> str:
        return _STATUS_EMOJI[self]


_STATUS_EMOJI = {
    Status.PLANNED: "📋",
    Status.IN_PROGRESS: "🔄",
    Status.IMPLEMENTED: "⚡",
    Status.TESTED: "✅",
    Status.DEPLOYED: "🚀",
    Status.DEPRECATED: "⚠️",
}

# The forward chain; deprecated sits outside it.
STATUS_CHAIN: tuple[Status, ...] = (
    Status.PLANNED,
    Status.IN_PROGRESS,
    Status.IMPLEMENTED,
    Status.TESTED,
    Status.DEPLOYED,
)


def can_transition(current: Status, target: Status) -> bool:
    """Whether a scenario may move from ``current`` to ``target``.

    Deprecating and resetting to planned are always allowed, as are
    self-loops. Otherwise the move must go forward along the chain, possibly
    skipping states. A deprecated scenario can only be reset.
    """
    if target in (Status.DEPRECATED, Status.PLANNED) or current == target:
        return True
    if current == Status.DEPRECATED:
        return False
    return STATUS_CHAIN.index(target) > STATUS_CHAIN.index(current)


def aggregate_status(statuses: Iterable[Status]) -> Status:
    """Display status of a use case derived from its scenarios' statuses.

    No scenarios means planned. Any deprecated scenario makes the whole use
    case deprecated. Otherwise the lowest status that is not planned wins,
    or planned when every scenario is planned.
    """
    collected = list(statuses)
    if not collected:
        return Status.PLANNED
    if Status.DEPRECATED in collected:
        return Status.DEPRECATED
    started = [s for s in collected if s != Status.PLANNED]
    if not started:
        return Status.PLANNED
    return min(started, key=STATUS_CHAIN.index)


class ScenarioType(Enum):
    MAIN = "main"
    ALTERNATIVE = "alternative"
    EXCEPTION = "exception"

    @classmethod
    def parse(cls, value: ScenarioType | str) -> ScenarioType:
        if isinstance(value, ScenarioType):
            return value
        key = str(value).strip().lower()
        found = _SCENARIO_TYPE_ALIASES.get(key)
        if found is None:
            raise ValidationError(
                f"Invalid scenario type: '{value}'. Valid options: main, alternative, exception",
                code="invalid_scenario_type",
            )
        return found


_SCENARIO_TYPE_ALIASES = {
    "main": ScenarioType.MAIN,
    "happy_path": ScenarioType.MAIN,
    "happy": ScenarioType.MAIN,
    "alternative": ScenarioType.ALTERNATIVE,
    "alternative_flow": ScenarioType.ALTERNATIVE,
    "alt": ScenarioType.ALTERNATIVE,
    "exception": ScenarioType.EXCEPTION,
    "exception_flow": ScenarioType.EXCEPTION,
    "error": ScenarioType.EXCEPTION,
}


class TargetType(Enum):
    """What a scenario reference or a condition link points at."""

    USE_CASE = "use_case"
    SCENARIO = "scenario"

    @classmethod
    def parse(cls, value: TargetType | str) -> TargetType:
        if isinstance(value, TargetType):
            return value
        key = str(value).strip().lower()
        if key in ("use_case", "usecase", "uc"):
            return cls.USE_CASE
        if key in ("scenario", "s"):
            return cls.SCENARIO
        raise ValidationError(f"Invalid reference target type: '{value}'")

    @classmethod
    def for_id(cls, target_id: str) -> TargetType:
        """Infer the target type from the shape of an id."""
        if is_scenario_id(target_id):
            return cls.SCENARIO
        if is_use_case_id(target_id):
            return cls.USE_CASE
        raise ValidationError(
            f"'{target_id}' is neither a use case id nor a scenario id", code="invalid_id"
        )


class ActorKind(Enum):
    PERSONA = "persona"
    SYSTEM = "system"
    EXTERNAL = "external"

    @classmethod
    def parse(cls, value: ActorKind | str) -> ActorKind:
        if isinstance(value, ActorKind):
            return value
        key = str(value).strip().lower()
        if key in ("external_service", "external-service"):
            return cls.EXTERNAL
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(
                f"Invalid actor kind: '{value}'. Valid options: persona, system, external"
            ) from None


USE_CASE_RELATIONSHIPS = ("depends_on", "extends", "includes", "alternative_to")
SCENARIO_RELATIONSHIPS = ("includes", "extends", "precedes", "depends_on", "alternative_to")
CONDITION_RELATIONSHIPS = ("depends_on", "requires", "follows", "triggers", "excludes")


def _check_relationship(relationship: str, vocabulary: tuple[str, ...]) -> None:
    if relationship not in vocabulary:
        raise ValidationError(
            f"Invalid relationship '{relationship}'. Valid options: {', '.join(vocabulary)}",
            code="invalid_relationship",
        )


# -- field bags ------------------------------------------------------------


class ValueKind(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    MAPPING = "mapping"


def value_kind(value: Any) -> ValueKind:
    """Classify a field-bag value, rejecting anything outside the five kinds."""
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        if not all(isinstance(item, str) for item in value):
            raise ValidationError(f"List values must hold only strings: {value!r}")
        return ValueKind.LIST
    if isinstance(value, dict):
        for key, nested in value.items():
            if not isinstance(key, str):
                raise ValidationError(f"Mapping keys must be strings: {key!r}")
            value_kind(nested)
        return ValueKind.MAPPING
    raise ValidationError(f"Unsupported field value {value!r} ({type(value).__name__})")


def check_bag(bag: Mapping[str, Any], owner: str) -> None:
    for key, value in bag.items():
        if not isinstance(key, str) or not key:
            raise ValidationError(f"{owner}: field names must be non-empty strings")
        try:
            value_kind(value)
        except ValidationError as exc:
            raise ValidationError(f"{owner}.{key}: {exc}") from None


def split_extra(values: Mapping[str, Any]) -> tuple[FieldBag, dict[str, Any]]:
    """Separate field-bag values from anything else a hand edit put there."""
    typed: FieldBag = {}
    preserved: dict[str, Any] = {}
    for key, value in values.items():
        try:
            value_kind(value)
        except ValidationError:
            preserved[key] = value
        else:
            typed[key] = value
    return typed, preserved


# -- metadata --------------------------------------------------------------


@dataclass
class Metadata:
    """Lifecycle block shared by use cases, scenarios and actors."""

    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 1
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(cls, set_created: bool = True, now: datetime | None = None) -> Metadata:
        moment = now or utcnow()
        return cls(created_at=moment if set_created else None, updated_at=moment)

    def touch(self, update_timestamp: bool = True, now: datetime | None = None) -> None:
        """Record a mutation: bump the version and, optionally, the timestamp.

        The update timestamp never moves backwards and always advances past
        its previous value, even within one clock tick.
        """
        self.version += 1
        if not update_timestamp:
            return
        moment = now or utcnow()
        floor = self.updated_at or self.created_at
        if floor is not None and moment <= floor:
            moment = floor + timedelta(microseconds=1)
        self.updated_at = moment


# -- views, steps, references, conditions ----------------------------------


@dataclass
class View:
    """A (methodology, level) projection attached to a use case."""

    methodology: str
    level: str
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.methodology = self.methodology.strip().lower()
        self.level = self.level.strip().lower()
        if not self.methodology or not self.level:
            raise ValidationError("A view needs both a methodology and a level")

    @property
    def key(self) -> str:
        return f"{self.methodology}-{self.level}"


@dataclass
class Step:
    order: int
    actor: str
    description: str
    receiver: str | None = None
    expected_result: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.order < 1:
            raise ValidationError(f"Step order must be 1 or greater, got {self.order}")
        if not self.actor.strip():
            raise ValidationError("A step needs an actor")
        if not self.description.strip():
            raise ValidationError("A step needs a description")


@dataclass
class UseCaseReference:
    target_id: str
    relationship: str
    description: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.target_id = canonicalize(self.target_id)
        if not is_use_case_id(self.target_id):
            raise ValidationError(f"Use case references must target a use case id: {self.target_id}")
        _check_relationship(self.relationship, USE_CASE_RELATIONSHIPS)


@dataclass
class ScenarioReference:
    target_type: TargetType
    target_id: str
    relationship: str
    description: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.target_type = TargetType.parse(self.target_type)
        self.target_id = canonicalize(self.target_id)
        if TargetType.for_id(self.target_id) != self.target_type:
            raise ValidationError(
                f"Reference target '{self.target_id}' is not a {self.target_type.value} id"
            )
        _check_relationship(self.relationship, SCENARIO_RELATIONSHIPS)


@dataclass
class Condition:
    """A pre- or postcondition: free text, optionally linked to one target."""

    text: str
    target_type: TargetType | None = None
    target_id: str | None = None
    relationship: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.text.strip():
            raise ValidationError("A condition needs text")
        if self.target_id is None and self.target_type is None:
            if self.relationship is not None:
                raise ValidationError("A condition relationship needs a target")
            return
        if self.target_id is None or self.target_type is None:
            raise ValidationError("A linked condition needs both a target type and a target id")
        self.target_type = TargetType.parse(self.target_type)
        self.target_id = canonicalize(self.target_id)
        if TargetType.for_id(self.target_id) != self.target_type:
            raise ValidationError(
                f"Condition target '{self.target_id}' is not a {self.target_type.value} id"
            )
        if self.relationship is None:
            raise ValidationError("A linked condition needs a relationship label")
        _check_relationship(self.relationship, CONDITION_RELATIONSHIPS)

    @property
    def is_linked(self) -> bool:
        return self.target_id is not None

    def __str__(self) -> str:
        if self.is_linked:
            return f"{self.text} ({self.relationship} {self.target_id})"
        return self.text


def _reorder(items: list[Any], new_order: list[int], what: str) -> list[Any]:
    """Permute ``items`` by 1-based positions; ``new_order`` must be a permutation."""
    if sorted(new_order) != list(range(1, len(items) + 1)):
        raise ValidationError(
            f"New {what} order must be a permutation of 1..{len(items)}, got {new_order}"
        )
    return [items[position - 1] for position in new_order]


def _check_position(items: list[Any], position: int, what: str, code: str) -> None:
    if not 1 <= position <= len(items):
        raise NotFoundError(f"No {what} at position {position}", code=code)


# -- scenario --------------------------------------------------------------


@dataclass
class Scenario:
    id: str
    title: str
    description: str = ""
    scenario_type: ScenarioType = ScenarioType.MAIN
    status: Status = Status.PLANNED
    persona: str | None = None
    steps: list[Step] = field(default_factory=list)
    preconditions: list[Condition] = field(default_factory=list)
    postconditions: list[Condition] = field(default_factory=list)
    references: list[ScenarioReference] = field(default_factory=list)
    metadata: Metadata = field(default_factory=Metadata.new)
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        self.id = canonicalize(self.id)
        if not is_scenario_id(self.id):
            raise ValidationError(f"Invalid scenario id: {self.id}", code="invalid_id")
        if not self.title.strip():
            raise ValidationError("Scenario title cannot be empty")
        self.scenario_type = ScenarioType.parse(self.scenario_type)
        self.status = Status.parse(self.status)
        self.steps = sorted(self.steps, key=lambda s: s.order)
        self._check_dense_steps()

    @property
    def use_case_id(self) -> str:
        return parse_scenario_id(self.id).use_case_id

    def _check_dense_steps(self) -> None:
        orders = [s.order for s in self.steps]
        if orders != list(range(1, len(orders) + 1)):
            raise ValidationError(
                f"Scenario {self.id}: step orders must be 1..{len(orders)} without gaps, got {orders}"
            )

    def _renumber(self) -> None:
        for index, step in enumerate(self.steps, start=1):
            step.order = index

    def touch(self, update_timestamp: bool = True) -> None:
        self.metadata.touch(update_timestamp)

    def step_at(self, order: int) -> Step:
        _check_position(self.steps, order, f"step in {self.id}", "step_not_found")
        return self.steps[order - 1]

    def append_step(
        self,
        actor: str,
        description: str,
        receiver: str | None = None,
        expected_result: str | None = None,
    ) -> Step:
        step = Step(
            order=len(self.steps) + 1,
            actor=actor,
            description=description,
            receiver=receiver,
            expected_result=expected_result,
        )
        self.steps.append(step)
        return step

    def replace_step(self, order: int, step: Step) -> None:
        self.step_at(order)
        step.order = order
        self.steps[order - 1] = step

    def remove_step(self, order: int) -> Step:
        removed = self.step_at(order)
        del self.steps[order - 1]
        self._renumber()
        return removed

    def reorder_steps(self, new_order: list[int]) -> None:
        """Rearrange steps: ``new_order[i]`` is the current order of the step
        that should end up at position ``i + 1``."""
        self.steps = _reorder(self.steps, new_order, "step")
        self._renumber()

    def set_status(self, status: Status | str) -> None:
        target = Status.parse(status)
        if not can_transition(self.status, target):
            raise StatusTransitionError(self.status.value, target.value)
        self.status = target

    def conditions(self, kind: str) -> list[Condition]:
        return self.preconditions if _condition_kind(kind) == "pre" else self.postconditions

    def add_reference(self, reference: ScenarioReference) -> None:
        if reference.target_type == TargetType.SCENARIO and reference.target_id == self.id:
            raise ValidationError("A scenario cannot reference itself", code="circular_reference")
        for existing in self.references:
            if (
                existing.target_id == reference.target_id
                and existing.relationship == reference.relationship
            ):
                raise ValidationError(
                    f"{self.id} already {reference.relationship} {reference.target_id}",
                    code="duplicate_reference",
                )
        self.references.append(reference)

    def remove_reference(self, target_id: str, relationship: str | None = None) -> None:
        target = canonicalize(target_id)
        kept = [
            r
            for r in self.references
            if not (r.target_id == target and relationship in (None, r.relationship))
        ]
        if len(kept) == len(self.references):
            raise NotFoundError(
                f"{self.id} has no reference to {target}", code="reference_not_found"
            )
        self.references = kept

    def actors(self) -> list[str]:
        """Distinct actors and receivers of the steps, in first-seen order."""
        seen: list[str] = []
        for step in self.steps:
            for name in (step.actor, step.receiver):
                if name and name not in seen:
                    seen.append(name)
        return seen


def _condition_kind(kind: str) -> str:
    normalized = kind.strip().lower()
    if normalized in ("pre", "precondition", "preconditions"):
        return "pre"
    if normalized in ("post", "postcondition", "postconditions"):
        return "post"
    raise ValidationError(f"Condition kind must be 'pre' or 'post', got '{kind}'")


def add_condition(conditions: list[Condition], condition: Condition) -> None:
    if any(existing == condition for existing in conditions):
        raise ValidationError(f"Condition already present: {condition}", code="duplicate_condition")
    conditions.append(condition)


def remove_condition(conditions: list[Condition], position: int) -> Condition:
    _check_position(conditions, position, "condition", "condition_not_found")
    return conditions.pop(position - 1)


def reorder_conditions(conditions: list[Condition], new_order: list[int]) -> None:
    conditions[:] = _reorder(conditions, new_order, "condition")


# -- use case --------------------------------------------------------------

# Top-level record keys; the extra bag may not reuse them.
RESERVED_KEYS = frozenset(
    {
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
    }
)


def normalize_category(category: str) -> str:
    """Lower-case a free-form category and join its words with underscores."""
    words = re.split(r"[^a-z0-9-]+", category.strip().lower())
    return "_".join(w for w in words if w)


@dataclass
class UseCase:
    id: str
    title: str
    category: str
    views: list[View]
    description: str = ""
    priority: Priority = Priority.MEDIUM
    metadata: Metadata = field(default_factory=Metadata.new)
    scenarios: list[Scenario] = field(default_factory=list)
    preconditions: list[Condition] = field(default_factory=list)
    postconditions: list[Condition] = field(default_factory=list)
    references: list[UseCaseReference] = field(default_factory=list)
    methodology_fields: dict[str, FieldBag] = field(default_factory=dict)
    extra: FieldBag = field(default_factory=dict)
    # Unknown top-level keys outside the field value kinds (dates, number
    # arrays, ...); written back verbatim, never promoted into templates.
    preserved: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check every invariant; also run after in-place mutation."""
        self.id = canonicalize(self.id)
        if not is_use_case_id(self.id):
            raise ValidationError(f"Invalid use case id: {self.id}", code="invalid_id")
        if not self.title.strip():
            raise ValidationError("Use case title cannot be empty")
        if not CATEGORY_RE.match(self.category):
            raise ValidationError(
                f"Invalid category '{self.category}': use lowercase words separated "
                "by dashes or underscores",
                code="invalid_category",
            )
        self.priority = Priority.parse(self.priority)
        if not self.views:
            raise ValidationError(f"{self.id} must have at least one view")
        seen: set[str] = set()
        for view in self.views:
            if view.methodology in seen:
                raise ValidationError(
                    f"{self.id} has two views for methodology '{view.methodology}'",
                    code="duplicate_view",
                )
            seen.add(view.methodology)
        scenario_ids: set[str] = set()
        for scenario in self.scenarios:
            if scenario.use_case_id != self.id:
                raise ValidationError(f"Scenario {scenario.id} does not belong to {self.id}")
            if scenario.id in scenario_ids:
                raise ValidationError(f"Duplicate scenario id {scenario.id}", code="duplicate_id")
            scenario_ids.add(scenario.id)
            scenario.validate()
        for methodology, bag in self.methodology_fields.items():
            check_bag(bag, f"methodology_fields.{methodology}")
        check_bag(self.extra, "extra")
        clashes = RESERVED_KEYS & (set(self.extra) | set(self.preserved))
        if clashes:
            raise ValidationError(f"Extra fields cannot reuse record keys: {sorted(clashes)}")
        doubled = set(self.extra) & set(self.preserved)
        if doubled:
            raise ValidationError(f"Extra fields defined twice: {sorted(doubled)}")

    # -- derived

    @property
    def status(self) -> Status:
        return aggregate_status(s.status for s in self.scenarios)

    @property
    def methodologies(self) -> list[str]:
        return [v.methodology for v in self.views]

    def view_for(self, methodology: str) -> View:
        for view in self.views:
            if view.methodology == methodology:
                return view
        raise NotFoundError(
            f"{self.id} has no view for methodology '{methodology}'", code="view_not_present"
        )

    def has_view(self, methodology: str) -> bool:
        return methodology in self.methodologies

    # -- views and field bags

    def add_view(self, view: View) -> None:
        if self.has_view(view.methodology):
            raise ValidationError(
                f"{self.id} already has a '{view.methodology}' view", code="duplicate_view"
            )
        self.views.append(view)
        self.methodology_fields.setdefault(view.methodology, {})

    def remove_view(self, methodology: str) -> View:
        view = self.view_for(methodology)
        if len(self.views) == 1:
            raise ValidationError(
                f"Cannot remove the only view of {self.id}", code="cannot_remove_last_view"
            )
        self.views.remove(view)
        return view

    def set_methodology_fields(self, methodology: str, fields: FieldBag) -> None:
        self.view_for(methodology)
        check_bag(fields, f"methodology_fields.{methodology}")
        self.methodology_fields[methodology] = dict(fields)

    def orphaned_methodology_fields(self) -> list[str]:
        """Methodology bags no view refers to any more."""
        return [m for m in self.methodology_fields if not self.has_view(m)]

    # -- scenarios

    def scenario(self, scenario_id: str) -> Scenario:
        wanted = canonicalize(scenario_id)
        for scenario in self.scenarios:
            if scenario.id == wanted:
                return scenario
        raise NotFoundError(
            f"Scenario {scenario_id} not found in {self.id}", code="scenario_not_found"
        )

    def add_scenario(
        self,
        title: str,
        scenario_type: ScenarioType | str = ScenarioType.MAIN,
        description: str = "",
        persona: str | None = None,
        set_created: bool = True,
    ) -> Scenario:
        scenario = Scenario(
            id=mint_scenario_id(self),
            title=title,
            description=description,
            scenario_type=ScenarioType.parse(scenario_type),
            persona=persona,
            metadata=Metadata.new(set_created=set_created),
        )
        self.scenarios.append(scenario)
        return scenario

    def remove_scenario(self, scenario_id: str) -> Scenario:
        scenario = self.scenario(scenario_id)
        self.scenarios.remove(scenario)
        return scenario

    # -- references and conditions

    def add_reference(self, reference: UseCaseReference) -> None:
        if reference.target_id == self.id:
            raise ValidationError("A use case cannot reference itself", code="circular_reference")
        for existing in self.references:
            if (
                existing.target_id == reference.target_id
                and existing.relationship == reference.relationship
            ):
                raise ValidationError(
                    f"{self.id} already {reference.relationship} {reference.target_id}",
                    code="duplicate_reference",
                )
        self.references.append(reference)

    def remove_reference(self, target_id: str, relationship: str | None = None) -> None:
        target = canonicalize(target_id)
        kept = [
            r
            for r in self.references
            if not (r.target_id == target and relationship in (None, r.relationship))
        ]
        if len(kept) == len(self.references):
            raise NotFoundError(
                f"{self.id} has no reference to {target}", code="reference_not_found"
            )
        self.references = kept

    def conditions(self, kind: str) -> list[Condition]:
        return self.preconditions if _condition_kind(kind) == "pre" else self.postconditions


# -- actors ----------------------------------------------------------------


@dataclass
class Actor:
    """A persona or system actor, referenced from scenarios and steps by id."""

    id: str
    name: str
    kind: ActorKind = ActorKind.PERSONA
    emoji: str = "🙂"
    fields: FieldBag = field(default_factory=dict)
    metadata: Metadata = field(default_factory=Metadata.new)

    def __post_init__(self) -> None:
        if not ACTOR_ID_RE.match(self.id):
            raise ValidationError(
                f"Actor id '{self.id}' must be lowercase letters, digits, dashes or underscores",
                code="invalid_id",
            )
        if not self.name.strip():
            raise ValidationError("Actor name cannot be empty")
        self.kind = ActorKind.parse(self.kind)
        check_bag(self.fields, f"actor {self.id}")


STANDARD_ACTORS: tuple[tuple[str, str, ActorKind, str], ...] = (
    ("database", "Database", ActorKind.SYSTEM, "💾"),
    ("webserver", "Web Server", ActorKind.SYSTEM, "🖥️"),
    ("api", "API", ActorKind.SYSTEM, "🌐"),
    ("payment-gateway", "Payment Gateway", ActorKind.EXTERNAL, "💳"),
    ("email-service", "Email Service", ActorKind.EXTERNAL, "📧"),
    ("auth-service", "Auth Service", ActorKind.EXTERNAL, "🔐"),
)
