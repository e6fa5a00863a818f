"""Projection coordinator: every operation on the corpus goes through here.

Mutations follow one pattern. The record is loaded, a deep copy is changed
in memory and re-validated, the source record is saved, the affected views
are rendered from the saved record, and the overview is rebuilt. A failure
before the save leaves both source and Markdown untouched. A render failure
after the save keeps the new source and raises :class:`ProjectionError`
naming the views to regenerate.
"""

from __future__ import annotations

import copy
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import structlog

from mucm.config import ProjectConfig, ProjectPaths, ensure_initialized, find_project_root
from mucm.errors import (
    Diagnostic,
    DuplicateIdError,
    MucmError,
    NotFoundError,
    NotInitializedError,
    ProjectionError,
    ValidationError,
)
from mucm.ids import canonicalize, mint_use_case_id, parse_scenario_id
from mucm.integrity import IntegrityChecker, would_create_cycle
from mucm.models import (
    STANDARD_ACTORS,
    Actor,
    ActorKind,
    Condition,
    Metadata,
    Priority,
    Scenario,
    ScenarioReference,
    ScenarioType,
    Status,
    Step,
    TargetType,
    UseCase,
    UseCaseReference,
    View,
    add_condition,
    normalize_category,
    remove_condition,
    reorder_conditions,
    utcnow,
)
from mucm.renderer import Renderer
from mucm.scaffold import ScaffoldResult, generate_scaffold
from mucm.schema import MethodologyDefinition, SchemaRegistry, coerce_field_value
from mucm.store import ActorStore, SourceStore
from mucm.templates import TemplateRegistry

log = structlog.get_logger(__name__)

MAX_CREATE_ATTEMPTS = 8

T = TypeVar("T")


def _cleared(value: str | None, current: str | None) -> str | None:
    """None keeps ``current``; a blank string clears it."""
    if value is None:
        return current
    return value if value.strip() else None


@dataclass
class OperationResult:
    """Outcome of a coordinator operation."""

    use_case: UseCase | None = None
    warnings: list[Diagnostic] = field(default_factory=list)
    paths: list[Path] = field(default_factory=list)
    subject: str | None = None


@dataclass
class CleanupReport:
    removed: dict[str, list[str]] = field(default_factory=dict)
    dry_run: bool = False

    @property
    def total(self) -> int:
        return sum(len(m) for m in self.removed.values())


@dataclass
class StatusSummary:
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    by_category: dict[str, int]


class Coordinator:
    def __init__(
        self,
        project_root: Path,
        config: ProjectConfig | None = None,
        strict: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.root = project_root
        self.config = config or ensure_initialized(project_root)
        self.paths = ProjectPaths(project_root, self.config)
        self.registry = SchemaRegistry.from_directory(self.paths.templates_dir)
        self.templates = TemplateRegistry(self.paths.templates_dir, self.registry)
        self.renderer = Renderer(self.registry, self.templates, strict=strict, clock=clock)
        self.store = SourceStore(
            self.paths.source_dir,
            self.paths.use_case_dir,
            self.config.source_extension,
            actor_dir=self.paths.actor_dir,
        )
        self.actors = ActorStore(self.paths.actor_dir, self.config.source_extension)

    @classmethod
    def open(cls, start: Path, strict: bool = False) -> Coordinator:
        root = find_project_root(start)
        if root is None:
            raise NotInitializedError("Project is not initialized. Run `mucm init` first.")
        return cls(root, strict=strict)

    # -- helpers

    def _category(self, category: str) -> str:
        normalized = normalize_category(category)
        if not normalized:
            raise ValidationError("Category cannot be empty", code="invalid_category")
        if self.store.is_reserved_category(normalized):
            raise ValidationError(
                f"Category '{normalized}' is reserved for actor records",
                code="invalid_category",
            )
        return normalized

    def _check_methodology(self, methodology: str) -> MethodologyDefinition:
        name = methodology.strip().lower()
        if name not in self.config.methodologies:
            raise ValidationError(
                f"Methodology '{methodology}' is not enabled. Enabled: "
                f"{', '.join(self.config.methodologies)}",
                code="unknown_methodology",
            )
        return self.registry.get(name)

    def resolve_view(self, methodology: str, level: str | None = None) -> View:
        definition = self._check_methodology(methodology)
        key = self.registry.resolve_level(definition.name, level or definition.default_level)
        return View(definition.name, key)

    def parse_views(self, specs: Iterable[View | str | tuple[str, str]] | None) -> list[View]:
        """Views from ``View`` objects, ``(methodology, level)`` pairs or
        ``"methodology[:level]"`` strings. None means the default methodology."""
        if not specs:
            return [self.resolve_view(self.config.default_methodology)]
        views = []
        for spec in specs:
            if isinstance(spec, View):
                views.append(self.resolve_view(spec.methodology, spec.level))
            elif isinstance(spec, tuple):
                views.append(self.resolve_view(*spec))
            else:
                methodology, _, level = str(spec).partition(":")
                views.append(self.resolve_view(methodology, level or None))
        return views

    def _coerce_bag(
        self, view: View, fields: dict[str, Any], subject: str
    ) -> tuple[dict[str, Any], list[Diagnostic]]:
        declared = {f.name: f for f in self.registry.fields_for(view.methodology, view.level)}
        bag: dict[str, Any] = {}
        warnings: list[Diagnostic] = []
        for name in sorted(fields):
            value = fields[name]
            definition = declared.get(name)
            if definition is None:
                bag[name] = value
                warnings.append(
                    Diagnostic(
                        "unknown_field",
                        f"'{name}' is not declared by {view.methodology}/{view.level}; kept as is",
                        subject,
                    )
                )
            else:
                bag[name] = coerce_field_value(definition, value)
        return bag, warnings

    def _persona_warning(self, persona: str | None, subject: str) -> list[Diagnostic]:
        if persona and self.actors.load_by_id(persona) is None:
            return [Diagnostic("unknown_persona", f"Actor '{persona}' is not defined", subject)]
        return []

    def _target_warning(
        self, target_type: TargetType, target_id: str, subject: str
    ) -> list[Diagnostic]:
        if target_type == TargetType.SCENARIO:
            parent = self.store.load_by_id(parse_scenario_id(target_id).use_case_id)
            exists = parent is not None and any(s.id == target_id for s in parent.scenarios)
        else:
            exists = self.store.exists(target_id)
        if exists:
            return []
        return [Diagnostic("dangling_reference", f"{target_id} does not exist (yet)", subject)]

    def _project(
        self, use_case: UseCase, views: Iterable[View]
    ) -> tuple[list[Path], list[Diagnostic], dict[str, str]]:
        paths: list[Path] = []
        warnings: list[Diagnostic] = []
        failures: dict[str, str] = {}
        for view in views:
            try:
                rendered = self.renderer.render_view(use_case, view)
                paths.append(self.store.save_markdown_only(use_case, view, rendered.text))
            except MucmError as exc:
                log.error("view render failed", id=use_case.id, view=view.key, error=str(exc))
                failures[view.key] = str(exc)
                continue
            warnings.extend(rendered.warnings)
        return paths, warnings, failures

    def _render_overview(self) -> tuple[Path, list[Diagnostic]]:
        loaded = self.store.load_all()
        warnings = [Diagnostic(e.code, e.detail, e.file) for e in loaded.errors]
        text = self.renderer.render_overview(loaded.use_cases, self.config.name)
        return self.store.save_overview(text), warnings

    def _commit(
        self,
        working: UseCase,
        views: Iterable[View] | None = None,
        create: bool = False,
        subject: str | None = None,
        warnings: list[Diagnostic] | None = None,
        previous_category: str | None = None,
    ) -> OperationResult:
        """Save ``working``, render ``views`` (all when None) and the overview."""
        working.validate()
        self.store.save_source_only(
            working,
            touch=not create,
            update_timestamp=self.config.auto_update_timestamps,
            create=create,
        )
        saved = self.store.get(working.id)
        result = OperationResult(saved, list(warnings or []), [], subject)
        targets = saved.views if views is None else [saved.view_for(v.methodology) for v in views]
        paths, render_warnings, failures = self._project(saved, targets)
        result.paths.extend(paths)
        result.warnings.extend(render_warnings)
        if previous_category is not None and previous_category != saved.category:
            self.store.move_markdown(saved, previous_category)
        overview, overview_warnings = self._render_overview()
        result.paths.append(overview)
        result.warnings.extend(overview_warnings)
        if failures:
            raise ProjectionError(saved.id, failures)
        return result

    def _mutate(
        self,
        use_case_id: str,
        change: Callable[[UseCase], T],
        views: Callable[[UseCase], list[View]] | None = None,
    ) -> tuple[OperationResult, T]:
        original = self.store.get(use_case_id)
        working = copy.deepcopy(original)
        value = change(working)
        targets = views(working) if views is not None else None
        result = self._commit(working, targets, previous_category=original.category)
        log.info("use case updated", id=working.id)
        return result, value

    def _scenario_mutation(
        self, use_case_id: str, scenario_id: str, change: Callable[[Scenario], T]
    ) -> tuple[OperationResult, T]:
        def apply(use_case: UseCase) -> T:
            scenario = use_case.scenario(scenario_id)
            value = change(scenario)
            scenario.touch(self.config.auto_update_timestamps)
            return value

        return self._mutate(use_case_id, apply)

    # -- use cases

    def create(
        self,
        title: str,
        category: str,
        description: str = "",
        priority: Priority | str = Priority.MEDIUM,
        views: Iterable[View | str | tuple[str, str]] | None = None,
        extra_fields: dict[str, Any] | None = None,
    ) -> OperationResult:
        if not title or not title.strip():
            raise ValidationError("Title cannot be empty")
        normalized = self._category(category)
        resolved_views = self.parse_views(views)
        priority = Priority.parse(priority)

        collection = self.registry.collect_fields_for_views(resolved_views)
        warnings = list(collection.warnings)
        methodology_fields: dict[str, dict[str, Any]] = {v.methodology: {} for v in resolved_views}
        extra: dict[str, Any] = {}
        for name in sorted(extra_fields or {}):
            value = (extra_fields or {})[name]
            definition = collection.fields_by_name.get(name)
            if definition is None:
                extra[name] = value
            else:
                owner = collection.methodology_of[name]
                methodology_fields[owner][name] = coerce_field_value(definition, value)

        for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
            existing = self.store.load_all().use_cases
            use_case_id = mint_use_case_id(
                normalized, existing, self.store.category_markdown_dir(normalized)
            )
            use_case = UseCase(
                id=use_case_id,
                title=title.strip(),
                category=normalized,
                description=description,
                priority=priority,
                views=[copy.copy(v) for v in resolved_views],
                metadata=Metadata.new(set_created=self.config.auto_set_created),
                methodology_fields=copy.deepcopy(methodology_fields),
                extra=dict(extra),
            )
            try:
                result = self._commit(use_case, create=True, subject=use_case_id, warnings=warnings)
            except DuplicateIdError:
                log.warning("minted id already taken, retrying", id=use_case_id, attempt=attempt)
                continue
            log.info("use case created", id=use_case_id, category=normalized)
            return result
        raise DuplicateIdError(
            f"Could not allocate a unique id in category '{normalized}' after "
            f"{MAX_CREATE_ATTEMPTS} attempts"
        )

    def update(
        self,
        use_case_id: str,
        title: str | None = None,
        category: str | None = None,
        description: str | None = None,
        priority: Priority | str | None = None,
    ) -> OperationResult:
        def apply(use_case: UseCase) -> None:
            if title is not None:
                if not title.strip():
                    raise ValidationError("Title cannot be empty")
                use_case.title = title.strip()
            if category is not None:
                use_case.category = self._category(category)
            if description is not None:
                use_case.description = description
            if priority is not None:
                use_case.priority = Priority.parse(priority)

        result, _ = self._mutate(use_case_id, apply)
        return result

    def update_methodology_fields(
        self, use_case_id: str, methodology: str, fields: dict[str, Any]
    ) -> OperationResult:
        """Replace the field bag of ``methodology`` and re-render its view."""
        warnings: list[Diagnostic] = []

        def apply(use_case: UseCase) -> None:
            view = use_case.view_for(methodology.strip().lower())
            bag, found = self._coerce_bag(view, fields, use_case.id)
            warnings.extend(found)
            use_case.set_methodology_fields(view.methodology, bag)

        result, _ = self._mutate(
            use_case_id, apply, views=lambda u: [u.view_for(methodology.strip().lower())]
        )
        result.warnings[:0] = warnings
        return result

    def add_view(self, use_case_id: str, methodology: str, level: str | None = None) -> OperationResult:
        """Attach a view and render only that view."""
        view = self.resolve_view(methodology, level)

        def apply(use_case: UseCase) -> None:
            use_case.add_view(view)

        result, _ = self._mutate(use_case_id, apply, views=lambda u: [view])
        return result

    def remove_view(self, use_case_id: str, methodology: str) -> OperationResult:
        """Detach a view and delete its rendered file; the field bag is kept."""

        def apply(use_case: UseCase) -> tuple[UseCase, View]:
            return use_case, use_case.remove_view(methodology.strip().lower())

        result, (saved, view) = self._mutate(use_case_id, apply, views=lambda u: [])
        deleted = self.store.delete_markdown(saved, view)
        if deleted is not None:
            result.paths.append(deleted)
        return result

    def cleanup_methodology_fields(
        self, use_case_id: str | None = None, dry_run: bool = False
    ) -> CleanupReport:
        """Drop field bags whose methodology no view uses any more."""
        report = CleanupReport(dry_run=dry_run)
        if use_case_id is not None:
            targets = [self.store.get(use_case_id)]
        else:
            targets = self.store.load_all().use_cases
        for use_case in targets:
            orphans = use_case.orphaned_methodology_fields()
            if not orphans:
                continue
            report.removed[use_case.id] = orphans
            if dry_run:
                continue
            working = copy.deepcopy(use_case)
            for methodology in orphans:
                del working.methodology_fields[methodology]
            working.validate()
            self.store.save_source_only(working, update_timestamp=self.config.auto_update_timestamps)
            log.info("methodology fields cleaned", id=use_case.id, removed=orphans)
        return report

    def regenerate(self, use_case_id: str | None = None) -> OperationResult:
        """Re-render from the source records; sources are never written."""
        if use_case_id is not None:
            use_case = self.store.get(use_case_id)
            paths, warnings, failures = self._project(use_case, use_case.views)
            if failures:
                raise ProjectionError(use_case.id, failures)
            return OperationResult(use_case, warnings, paths, use_case.id)

        loaded = self.store.load_all()
        result = OperationResult(warnings=[Diagnostic(e.code, e.detail, e.file) for e in loaded.errors])
        for use_case in loaded.use_cases:
            paths, warnings, failures = self._project(use_case, use_case.views)
            result.paths.extend(paths)
            result.warnings.extend(warnings)
            for view_key, detail in failures.items():
                result.warnings.append(Diagnostic("render_failed", detail, f"{use_case.id} ({view_key})"))
        overview, overview_warnings = self._render_overview()
        result.paths.append(overview)
        result.warnings.extend(w for w in overview_warnings if w not in result.warnings)
        log.info("corpus regenerated", use_cases=len(loaded.use_cases), files=len(result.paths))
        return result

    def delete(self, use_case_id: str) -> OperationResult:
        removed = self.store.delete(use_case_id)
        overview, warnings = self._render_overview()
        return OperationResult(None, warnings, removed + [overview], canonicalize(use_case_id))

    # -- scenarios

    def add_scenario(
        self,
        use_case_id: str,
        title: str,
        scenario_type: str = "main",
        description: str = "",
        persona: str | None = None,
    ) -> OperationResult:
        def apply(use_case: UseCase) -> str:
            scenario = use_case.add_scenario(
                title,
                scenario_type=scenario_type,
                description=description,
                persona=persona,
                set_created=self.config.auto_set_created,
            )
            return scenario.id

        result, scenario_id = self._mutate(use_case_id, apply)
        result.subject = scenario_id
        result.warnings.extend(self._persona_warning(persona, scenario_id))
        return result

    def edit_scenario(
        self,
        use_case_id: str,
        scenario_id: str,
        title: str | None = None,
        description: str | None = None,
        scenario_type: str | None = None,
    ) -> OperationResult:
        def apply(scenario: Scenario) -> None:
            if title is not None:
                scenario.title = title
            if description is not None:
                scenario.description = description
            if scenario_type is not None:
                scenario.scenario_type = ScenarioType.parse(scenario_type)

        result, _ = self._scenario_mutation(use_case_id, scenario_id, apply)
        result.subject = canonicalize(scenario_id)
        return result

    def delete_scenario(self, use_case_id: str, scenario_id: str) -> OperationResult:
        result, removed = self._mutate(use_case_id, lambda u: u.remove_scenario(scenario_id))
        result.subject = removed.id
        return result

    def update_status(self, use_case_id: str, scenario_id: str, status: Status | str) -> OperationResult:
        result, _ = self._scenario_mutation(use_case_id, scenario_id, lambda s: s.set_status(status))
        result.subject = canonicalize(scenario_id)
        return result

    def add_step(
        self,
        use_case_id: str,
        scenario_id: str,
        actor: str,
        description: str,
        receiver: str | None = None,
        expected_result: str | None = None,
    ) -> OperationResult:
        result, step = self._scenario_mutation(
            use_case_id,
            scenario_id,
            lambda s: s.append_step(actor, description, receiver, expected_result),
        )
        result.subject = f"{canonicalize(scenario_id)} step {step.order}"
        return result

    def edit_step(
        self,
        use_case_id: str,
        scenario_id: str,
        order: int,
        actor: str | None = None,
        description: str | None = None,
        receiver: str | None = None,
        expected_result: str | None = None,
    ) -> OperationResult:
        """Change some attributes of one step; an empty ``receiver`` or
        ``expected_result`` clears it."""

        def apply(scenario: Scenario) -> None:
            current = scenario.step_at(order)
            scenario.replace_step(
                order,
                Step(
                    order=order,
                    actor=actor if actor is not None else current.actor,
                    description=description if description is not None else current.description,
                    receiver=_cleared(receiver, current.receiver),
                    expected_result=_cleared(expected_result, current.expected_result),
                    extra=current.extra,
                ),
            )

        result, _ = self._scenario_mutation(use_case_id, scenario_id, apply)
        return result

    def remove_step(self, use_case_id: str, scenario_id: str, order: int) -> OperationResult:
        result, _ = self._scenario_mutation(use_case_id, scenario_id, lambda s: s.remove_step(order))
        return result

    def reorder_steps(self, use_case_id: str, scenario_id: str, new_order: list[int]) -> OperationResult:
        result, _ = self._scenario_mutation(
            use_case_id, scenario_id, lambda s: s.reorder_steps(list(new_order))
        )
        return result

    def assign_persona(self, use_case_id: str, scenario_id: str, actor_id: str) -> OperationResult:
        def apply(scenario: Scenario) -> None:
            scenario.persona = actor_id

        result, _ = self._scenario_mutation(use_case_id, scenario_id, apply)
        result.warnings.extend(self._persona_warning(actor_id, canonicalize(scenario_id)))
        return result

    def unassign_persona(self, use_case_id: str, scenario_id: str) -> OperationResult:
        def apply(scenario: Scenario) -> None:
            if scenario.persona is None:
                raise ValidationError(f"{scenario.id} has no persona assigned")
            scenario.persona = None

        result, _ = self._scenario_mutation(use_case_id, scenario_id, apply)
        return result

    def add_scenario_reference(
        self,
        use_case_id: str,
        scenario_id: str,
        target_id: str,
        relationship: str,
        description: str | None = None,
    ) -> OperationResult:
        target = canonicalize(target_id)
        target_type = TargetType.for_id(target)
        reference = ScenarioReference(target_type, target, relationship, description)

        def apply(use_case: UseCase) -> None:
            scenario = use_case.scenario(scenario_id)
            if target_type == TargetType.SCENARIO and would_create_cycle(use_case, scenario.id, target):
                raise ValidationError(
                    f"Referencing {target} from {scenario.id} would create a cycle",
                    code="circular_reference",
                )
            scenario.add_reference(reference)
            scenario.touch(self.config.auto_update_timestamps)

        result, _ = self._mutate(use_case_id, apply)
        result.warnings.extend(self._target_warning(target_type, target, canonicalize(scenario_id)))
        return result

    def remove_scenario_reference(
        self,
        use_case_id: str,
        scenario_id: str,
        target_id: str,
        relationship: str | None = None,
    ) -> OperationResult:
        result, _ = self._scenario_mutation(
            use_case_id, scenario_id, lambda s: s.remove_reference(target_id, relationship)
        )
        return result

    # -- conditions

    def _condition_mutation(
        self,
        use_case_id: str,
        scenario_id: str | None,
        change: Callable[[list[Condition]], T],
        kind: str,
    ) -> tuple[OperationResult, T]:
        def apply(use_case: UseCase) -> T:
            if scenario_id is None:
                return change(use_case.conditions(kind))
            scenario = use_case.scenario(scenario_id)
            value = change(scenario.conditions(kind))
            scenario.touch(self.config.auto_update_timestamps)
            return value

        return self._mutate(use_case_id, apply)

    def add_condition(
        self,
        use_case_id: str,
        text: str,
        kind: str = "pre",
        scenario_id: str | None = None,
        target_id: str | None = None,
        relationship: str | None = None,
    ) -> OperationResult:
        """Add a pre- or postcondition to a use case or one of its scenarios.

        A ``target_id`` links the condition to a use case or scenario; the
        target type is inferred from the id.
        """
        target_type = TargetType.for_id(canonicalize(target_id)) if target_id else None
        if target_id and relationship is None:
            relationship = "depends_on"
        condition = Condition(text, target_type, target_id, relationship)
        result, _ = self._condition_mutation(
            use_case_id, scenario_id, lambda conditions: add_condition(conditions, condition), kind
        )
        if condition.is_linked and condition.target_type is not None:
            result.warnings.extend(
                self._target_warning(condition.target_type, condition.target_id or "", use_case_id)
            )
        return result

    def remove_condition(
        self, use_case_id: str, position: int, kind: str = "pre", scenario_id: str | None = None
    ) -> OperationResult:
        result, _ = self._condition_mutation(
            use_case_id, scenario_id, lambda conditions: remove_condition(conditions, position), kind
        )
        return result

    def reorder_conditions(
        self,
        use_case_id: str,
        new_order: list[int],
        kind: str = "pre",
        scenario_id: str | None = None,
    ) -> OperationResult:
        result, _ = self._condition_mutation(
            use_case_id,
            scenario_id,
            lambda conditions: reorder_conditions(conditions, list(new_order)),
            kind,
        )
        return result

    # -- use case references

    def add_reference(
        self,
        use_case_id: str,
        target_id: str,
        relationship: str,
        description: str | None = None,
    ) -> OperationResult:
        reference = UseCaseReference(target_id, relationship, description)
        result, _ = self._mutate(use_case_id, lambda u: u.add_reference(reference))
        result.warnings.extend(
            self._target_warning(TargetType.USE_CASE, reference.target_id, canonicalize(use_case_id))
        )
        return result

    def remove_reference(
        self, use_case_id: str, target_id: str, relationship: str | None = None
    ) -> OperationResult:
        result, _ = self._mutate(use_case_id, lambda u: u.remove_reference(target_id, relationship))
        return result

    # -- queries

    def get_use_case(self, use_case_id: str) -> UseCase:
        return self.store.get(use_case_id)

    def list_use_cases(
        self,
        category: str | None = None,
        priority: Priority | str | None = None,
        status: Status | str | None = None,
    ) -> list[UseCase]:
        wanted_priority = Priority.parse(priority) if priority is not None else None
        wanted_status = Status.parse(status) if status is not None else None
        wanted_category = normalize_category(category) if category is not None else None
        found = []
        for use_case in self.store.load_all().use_cases:
            if wanted_category is not None and use_case.category != wanted_category:
                continue
            if wanted_priority is not None and use_case.priority != wanted_priority:
                continue
            if wanted_status is not None and use_case.status != wanted_status:
                continue
            found.append(use_case)
        return sorted(found, key=lambda u: (u.category, u.id))

    def find_scenario_id_by_title(self, use_case_id: str, title: str) -> str:
        use_case = self.store.get(use_case_id)
        wanted = title.strip().lower()
        for scenario in use_case.scenarios:
            if scenario.title.strip().lower() == wanted:
                return scenario.id
        raise NotFoundError(
            f"No scenario titled '{title}' in {use_case.id}", code="scenario_not_found"
        )

    def use_cases_for_persona(self, actor_id: str) -> list[tuple[UseCase, list[str]]]:
        """Use cases with scenarios assigned to ``actor_id`` and those scenario ids."""
        matches = []
        for use_case in self.list_use_cases():
            scenario_ids = [s.id for s in use_case.scenarios if s.persona == actor_id]
            if scenario_ids:
                matches.append((use_case, scenario_ids))
        return matches

    def categories(self) -> list[str]:
        return sorted({u.category for u in self.store.load_all().use_cases})

    def status_summary(self) -> StatusSummary:
        use_cases = self.store.load_all().use_cases
        by_status = {s.value: 0 for s in Status}
        by_priority = {p.value: 0 for p in Priority}
        by_status.update(Counter(u.status.value for u in use_cases))
        by_priority.update(Counter(u.priority.value for u in use_cases))
        by_category = dict(sorted(Counter(u.category for u in use_cases).items()))
        return StatusSummary(len(use_cases), by_status, by_priority, by_category)

    def methodologies(self) -> list[MethodologyDefinition]:
        return [self.registry.get(name) for name in self.registry.names()]

    def methodology_info(self, name: str) -> MethodologyDefinition:
        return self.registry.get(name)

    def validate(self, use_case_id: str | None = None) -> list[Diagnostic]:
        """Consistency report over the corpus, or one use case of it."""
        loaded = self.store.load_all()
        diagnostics = [Diagnostic(e.code, e.detail, e.file) for e in loaded.errors]
        diagnostics.extend(self.registry.warnings)
        only = None
        if use_case_id is not None:
            only = self.store.get(use_case_id).id
        checker = IntegrityChecker(
            loaded.use_cases,
            self.registry,
            actor_ids=self.actors.ids(),
            store=self.store,
            renderer=self.renderer,
        )
        diagnostics.extend(checker.check(only))
        return diagnostics

    def scaffold(self, use_case_id: str, overwrite: bool = False) -> ScaffoldResult:
        use_case = self.store.get(use_case_id)
        return generate_scaffold(
            use_case, self.renderer, self.paths.test_dir, self.config.test_language, overwrite
        )

    # -- actors

    def add_actor(
        self,
        actor_id: str,
        name: str,
        kind: ActorKind | str = ActorKind.PERSONA,
        emoji: str | None = None,
        fields: dict[str, Any] | None = None,
    ) -> tuple[Actor, list[Diagnostic]]:
        if self.actors.load_by_id(actor_id) is not None:
            raise DuplicateIdError(f"Actor '{actor_id}' already exists")
        actor = Actor(
            id=actor_id,
            name=name,
            kind=ActorKind.parse(kind),
            emoji=emoji or "🙂",
            fields=dict(fields or {}),
            metadata=Metadata.new(set_created=self.config.auto_set_created),
        )
        spec = self.config.actor_fields.get(actor.kind.value, {})
        warnings = [
            Diagnostic(
                "missing_actor_field",
                f"Field '{field_name}' is required for {actor.kind.value} actors",
                actor.id,
            )
            for field_name in spec.get("required", [])
            if field_name not in actor.fields
        ]
        self.actors.save(actor)
        log.info("actor added", id=actor.id, kind=actor.kind.value)
        return actor, warnings

    def list_actors(self) -> list[Actor]:
        actors, errors = self.actors.load_all()
        for error in errors:
            log.warning("actor skipped", file=error.file, detail=error.detail)
        return actors

    def remove_actor(self, actor_id: str) -> Path:
        return self.actors.delete(actor_id)

    def install_standard_actors(self) -> list[Actor]:
        installed = []
        for actor_id, name, kind, emoji in STANDARD_ACTORS:
            if self.actors.load_by_id(actor_id) is not None:
                continue
            actor, _ = self.add_actor(actor_id, name, kind, emoji)
            installed.append(actor)
        return installed

