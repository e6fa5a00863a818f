"""On-demand consistency checks over a loaded corpus.

Nothing here blocks a save: forward references are allowed when writing, and
problems are reported as :class:`~mucm.errors.Diagnostic` values.
"""

from __future__ import annotations

from collections.abc import Iterable

import networkx as nx

from mucm.errors import Diagnostic, MucmError
from mucm.markdown import same_projection
from mucm.models import Condition, TargetType, UseCase
from mucm.renderer import Renderer, required_fields_missing
from mucm.schema import SchemaRegistry, value_matches
from mucm.store import SourceStore


def scenario_reference_graph(use_cases: Iterable[UseCase]) -> nx.DiGraph:
    """Directed graph of scenario-to-scenario references."""
    graph = nx.DiGraph()
    for use_case in use_cases:
        for scenario in use_case.scenarios:
            graph.add_node(scenario.id)
            for ref in scenario.references:
                if ref.target_type == TargetType.SCENARIO:
                    graph.add_edge(scenario.id, ref.target_id, relationship=ref.relationship)
    return graph


def would_create_cycle(use_case: UseCase, source_id: str, target_id: str) -> bool:
    """Whether adding ``source_id -> target_id`` closes a loop inside ``use_case``."""
    if source_id == target_id:
        return True
    graph = scenario_reference_graph([use_case])
    if target_id not in graph or source_id not in graph:
        return False
    return nx.has_path(graph, target_id, source_id)


class IntegrityChecker:
    def __init__(
        self,
        use_cases: list[UseCase],
        registry: SchemaRegistry,
        actor_ids: set[str] | None = None,
        store: SourceStore | None = None,
        renderer: Renderer | None = None,
    ) -> None:
        self.use_cases = use_cases
        self.registry = registry
        self.actor_ids = actor_ids
        self.store = store
        self.renderer = renderer
        self.use_case_ids = {u.id for u in use_cases}
        self.scenario_ids = {s.id for u in use_cases for s in u.scenarios}

    def check(self, only: str | None = None) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        for use_case in self.use_cases:
            if only is not None and use_case.id != only:
                continue
            diagnostics.extend(self.check_references(use_case))
            diagnostics.extend(self.check_fields(use_case))
            if self.store is not None and self.renderer is not None:
                diagnostics.extend(self.check_rendered(use_case))
        diagnostics.extend(self.check_cycles(only))
        return diagnostics

    def _target_exists(self, target_type: TargetType, target_id: str) -> bool:
        if target_type == TargetType.SCENARIO:
            return target_id in self.scenario_ids
        return target_id in self.use_case_ids

    def _check_conditions(self, owner: str, conditions: list[Condition]) -> list[Diagnostic]:
        found = []
        for condition in conditions:
            if condition.is_linked and condition.target_type is not None:
                if not self._target_exists(condition.target_type, condition.target_id or ""):
                    found.append(
                        Diagnostic(
                            "dangling_reference",
                            f"Condition '{condition.text}' points at missing {condition.target_id}",
                            owner,
                        )
                    )
        return found

    def check_references(self, use_case: UseCase) -> list[Diagnostic]:
        found: list[Diagnostic] = []
        for ref in use_case.references:
            if ref.target_id not in self.use_case_ids:
                found.append(
                    Diagnostic(
                        "dangling_reference",
                        f"{ref.relationship} {ref.target_id}, which does not exist",
                        use_case.id,
                    )
                )
        found.extend(self._check_conditions(use_case.id, use_case.preconditions))
        found.extend(self._check_conditions(use_case.id, use_case.postconditions))
        for scenario in use_case.scenarios:
            for ref in scenario.references:
                if not self._target_exists(ref.target_type, ref.target_id):
                    found.append(
                        Diagnostic(
                            "dangling_reference",
                            f"{ref.relationship} {ref.target_id}, which does not exist",
                            scenario.id,
                        )
                    )
            found.extend(self._check_conditions(scenario.id, scenario.preconditions))
            found.extend(self._check_conditions(scenario.id, scenario.postconditions))
            if (
                self.actor_ids is not None
                and scenario.persona
                and scenario.persona not in self.actor_ids
            ):
                found.append(
                    Diagnostic("unknown_persona", f"Persona '{scenario.persona}' is not defined", scenario.id)
                )
        return found

    def check_fields(self, use_case: UseCase) -> list[Diagnostic]:
        found: list[Diagnostic] = []
        for view in use_case.views:
            try:
                fields = self.registry.fields_for(view.methodology, view.level)
            except MucmError as exc:
                found.append(Diagnostic("unresolved_view", str(exc), f"{use_case.id} ({view.key})"))
                continue
            declared = {f.name: f for f in fields}
            bag = use_case.methodology_fields.get(view.methodology, {})
            for name, value in bag.items():
                definition = declared.get(name)
                if definition is None:
                    found.append(
                        Diagnostic(
                            "unknown_field",
                            f"'{name}' is not declared by {view.methodology}/{view.level}",
                            use_case.id,
                        )
                    )
                elif not value_matches(definition, value):
                    found.append(
                        Diagnostic(
                            "type_mismatch",
                            f"'{name}' should be {definition.field_type}, found {value!r}",
                            use_case.id,
                        )
                    )
            for name in required_fields_missing(fields, bag):
                found.append(
                    Diagnostic(
                        "missing_required_field",
                        f"Required field '{name}' has no value",
                        f"{use_case.id} ({view.key})",
                    )
                )
        for methodology in use_case.orphaned_methodology_fields():
            found.append(
                Diagnostic(
                    "orphaned_methodology_fields",
                    f"Fields for '{methodology}' are kept but no view uses them; run cleanup",
                    use_case.id,
                )
            )
        return found

    def check_rendered(self, use_case: UseCase) -> list[Diagnostic]:
        """Rendered views that are missing or differ from a fresh render."""
        store, renderer = self.store, self.renderer
        if store is None or renderer is None:
            return []
        found: list[Diagnostic] = []
        for view in use_case.views:
            path = store.markdown_path(use_case, view)
            if not path.exists():
                found.append(Diagnostic("missing_view_file", f"{path.name} has not been rendered", use_case.id))
                continue
            try:
                current = path.read_text(encoding="utf-8")
                expected = renderer.render_view(use_case, view).text
                up_to_date = same_projection(current, expected)
            except OSError as exc:
                found.append(Diagnostic("unreadable_view_file", str(exc), use_case.id))
                continue
            except MucmError as exc:
                found.append(Diagnostic(exc.code, str(exc), f"{use_case.id} ({view.key})"))
                continue
            if not up_to_date:
                found.append(
                    Diagnostic(
                        "stale_view",
                        f"{path.name} is out of date; run `mucm regenerate {use_case.id}`",
                        use_case.id,
                    )
                )
        return found

    def check_cycles(self, only: str | None = None) -> list[Diagnostic]:
        graph = scenario_reference_graph(self.use_cases)
        found: list[Diagnostic] = []
        for cycle in nx.simple_cycles(graph):
            if only is not None and not any(node.startswith(f"{only}-") for node in cycle):
                continue
            path = " -> ".join([*cycle, cycle[0]])
            found.append(Diagnostic("reference_cycle", f"Scenario references form a loop: {path}", cycle[0]))
        return found
