"""Unit tests for mucm.integrity."""

import pytest

from mucm.integrity import IntegrityChecker, scenario_reference_graph, would_create_cycle
from mucm.models import Condition, ScenarioReference, TargetType, UseCase, UseCaseReference, View
from mucm.schema import SchemaRegistry


def _use_case(identifier: str = "UC-AUT-001", **overrides: object) -> UseCase:
    values: dict[str, object] = {
        "id": identifier,
        "title": "User Login",
        "category": "authentication",
        "views": [View("business", "normal")],
        "methodology_fields": {"business": {"business_value": "Retention"}},
    }
    values.update(overrides)
    return UseCase(**values)  # type: ignore[arg-type]


def _kinds(checker: IntegrityChecker) -> list[str]:
    return sorted(d.kind for d in checker.check())


class TestReferenceChecks:
    def test_clean_corpus(self, registry: SchemaRegistry) -> None:
        assert IntegrityChecker([_use_case()], registry).check() == []

    def test_dangling_use_case_reference(self, registry: SchemaRegistry) -> None:
        use_case = _use_case()
        use_case.add_reference(UseCaseReference("UC-REG-001", "depends_on"))
        diagnostics = IntegrityChecker([use_case], registry).check()
        assert [d.kind for d in diagnostics] == ["dangling_reference"]
        assert diagnostics[0].subject == "UC-AUT-001"

    def test_existing_reference_is_fine(self, registry: SchemaRegistry) -> None:
        use_case = _use_case()
        use_case.add_reference(UseCaseReference("UC-REG-001", "depends_on"))
        other = _use_case("UC-REG-001", category="registration")
        assert IntegrityChecker([use_case, other], registry).check() == []

    def test_dangling_condition_and_scenario_reference(self, registry: SchemaRegistry) -> None:
        use_case = _use_case()
        scenario = use_case.add_scenario("Happy Path")
        scenario.add_reference(ScenarioReference(TargetType.SCENARIO, "UC-REG-001-S01", "includes"))
        scenario.postconditions.append(
            Condition("Welcome mail sent", TargetType.USE_CASE, "UC-MAI-001", "triggers")
        )
        assert _kinds(IntegrityChecker([use_case], registry)) == [
            "dangling_reference",
            "dangling_reference",
        ]

    def test_unknown_persona(self, registry: SchemaRegistry) -> None:
        use_case = _use_case()
        use_case.add_scenario("Happy Path", persona="ghost")
        checker = IntegrityChecker([use_case], registry, actor_ids={"returning-customer"})
        assert _kinds(checker) == ["unknown_persona"]

    def test_persona_not_checked_without_actor_ids(self, registry: SchemaRegistry) -> None:
        use_case = _use_case()
        use_case.add_scenario("Happy Path", persona="ghost")
        assert IntegrityChecker([use_case], registry).check() == []


class TestFieldChecks:
    def test_unknown_and_mistyped_fields(self, registry: SchemaRegistry) -> None:
        use_case = _use_case(
            methodology_fields={
                "business": {"business_value": "x", "mood": "happy", "stakeholders": "Sales"}
            }
        )
        assert _kinds(IntegrityChecker([use_case], registry)) == ["type_mismatch", "unknown_field"]

    def test_missing_required(self, registry: SchemaRegistry) -> None:
        use_case = _use_case(methodology_fields={})
        assert _kinds(IntegrityChecker([use_case], registry)) == ["missing_required_field"]

    def test_unresolved_view(self, registry: SchemaRegistry) -> None:
        use_case = _use_case(views=[View("business", "expert")])
        assert _kinds(IntegrityChecker([use_case], registry)) == ["unresolved_view"]

    def test_orphaned_bag(self, registry: SchemaRegistry) -> None:
        use_case = _use_case(
            methodology_fields={"business": {"business_value": "x"}, "tester": {"automated": True}}
        )
        assert _kinds(IntegrityChecker([use_case], registry)) == ["orphaned_methodology_fields"]

    def test_rendered_files_not_checked_without_store(self, registry: SchemaRegistry) -> None:
        assert IntegrityChecker([_use_case()], registry).check_rendered(_use_case()) == []


class TestCycles:
    def _linked(self) -> UseCase:
        use_case = _use_case()
        first = use_case.add_scenario("First")
        second = use_case.add_scenario("Second")
        third = use_case.add_scenario("Third")
        first.add_reference(ScenarioReference(TargetType.SCENARIO, second.id, "precedes"))
        second.add_reference(ScenarioReference(TargetType.SCENARIO, third.id, "precedes"))
        return use_case

    def test_graph(self) -> None:
        graph = scenario_reference_graph([self._linked()])
        assert graph.has_edge("UC-AUT-001-S01", "UC-AUT-001-S02")
        assert graph.number_of_edges() == 2

    @pytest.mark.parametrize(
        ("source", "target", "expected"),
        [
            ("UC-AUT-001-S03", "UC-AUT-001-S01", True),
            ("UC-AUT-001-S01", "UC-AUT-001-S03", False),
            ("UC-AUT-001-S02", "UC-AUT-001-S02", True),
            ("UC-AUT-001-S03", "UC-BIL-001-S01", False),
        ],
    )
    def test_would_create_cycle(self, source: str, target: str, expected: bool) -> None:
        assert would_create_cycle(self._linked(), source, target) is expected

    def test_cycle_reported(self, registry: SchemaRegistry) -> None:
        use_case = self._linked()
        use_case.scenarios[2].add_reference(
            ScenarioReference(TargetType.SCENARIO, "UC-AUT-001-S01", "depends_on")
        )
        diagnostics = IntegrityChecker([use_case], registry).check()
        assert [d.kind for d in diagnostics] == ["reference_cycle"]
