"""Unit tests for mucm.renderer, mucm.templates and mucm.markdown."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from mucm.errors import MissingRequiredFieldError, NotFoundError, RenderError
from mucm.markdown import parse_front_matter, same_projection, strip_generated_at
from mucm.models import Condition, Priority, Status, UseCase, UseCaseReference, View
from mucm.renderer import FIELD_SCHEMA_KEY, GENERATED_AT_KEY, Renderer, generated_stamp
from mucm.schema import SchemaRegistry
from mucm.templates import TemplateRegistry, capitalise, humanize, kebab_case, snake_case

NOW = datetime(2026, 3, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)


def _clock() -> datetime:
    return NOW


@pytest.fixture
def renderer(registry: SchemaRegistry, templates: TemplateRegistry) -> Renderer:
    return Renderer(registry, templates, clock=_clock)


def _use_case(**overrides: object) -> UseCase:
    values: dict[str, object] = {
        "id": "UC-AUT-001",
        "title": "User Login",
        "category": "authentication",
        "description": "Sign in with email and password.",
        "priority": Priority.HIGH,
        "views": [View("business", "normal")],
        "methodology_fields": {"business": {"business_value": "Fewer support calls"}},
    }
    values.update(overrides)
    return UseCase(**values)  # type: ignore[arg-type]


class TestFilters:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("User Login", "user_login"), ("UC-AUT-001-S01", "uc_aut_001_s01"), ("camelCase", "camel_case")],
    )
    def test_snake_case(self, value: str, expected: str) -> None:
        assert snake_case(value) == expected

    def test_other_filters(self) -> None:
        assert kebab_case("User Login") == "user-login"
        assert capitalise("high") == "High"
        assert humanize("in_progress") == "In progress"


class TestGeneratedStamp:
    def test_second_precision(self) -> None:
        assert generated_stamp(NOW) == "2026-03-01T12:00:00+00:00"


class TestBuildContext:
    def test_bag_promoted(self, renderer: Renderer) -> None:
        context = renderer.build_context(_use_case(), View("business", "normal"))
        assert context.values["business_value"] == "Fewer support calls"
        assert context.values["title"] == "User Login"
        assert context.values[GENERATED_AT_KEY] == "2026-03-01T12:00:00+00:00"
        assert context.warnings == []

    def test_colliding_bag_key_renamed(self, renderer: Renderer) -> None:
        use_case = _use_case(
            methodology_fields={"business": {"business_value": "x", "title": "Shadow"}}
        )
        values = renderer.build_context(use_case, View("business", "normal")).values
        assert values["title"] == "User Login"
        assert values["methodology_title"] == "Shadow"
        assert values["view"]["title"] == "Business Analysis"

    def test_colliding_bag_key_fills_unset_attribute(self, renderer: Renderer) -> None:
        use_case = _use_case(
            description="",
            methodology_fields={"business": {"business_value": "x", "description": "From bag"}},
        )
        values = renderer.build_context(use_case, View("business", "normal")).values
        assert values["description"] == "From bag"

    def test_extra_collision_prefixed(self, renderer: Renderer) -> None:
        use_case = _use_case(
            methodology_fields={"business": {"business_value": "x", "owner": "sales"}},
            extra={"owner": "identity", "jira": "AUTH-1"},
        )
        values = renderer.build_context(use_case, View("business", "normal")).values
        assert values["owner"] == "sales"
        assert values["extra_owner"] == "identity"
        assert values["jira"] == "AUTH-1"

    def test_field_schema_in_order(self, renderer: Renderer) -> None:
        values = renderer.build_context(_use_case(), View("business", "advanced")).values
        names = [entry["name"] for entry in values[FIELD_SCHEMA_KEY]]
        assert names[:3] == ["business_rules", "compliance_required", "estimated_roi"]
        compliance = values[FIELD_SCHEMA_KEY][1]
        assert compliance["value"] is False
        assert values["compliance_required"] is False

    def test_missing_required_warns(self, renderer: Renderer) -> None:
        context = renderer.build_context(_use_case(methodology_fields={}), View("business", "normal"))
        assert [w.kind for w in context.warnings] == ["missing_required_field"]

    def test_missing_required_strict(self, registry: SchemaRegistry, templates: TemplateRegistry) -> None:
        strict = Renderer(registry, templates, strict=True, clock=_clock)
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            strict.build_context(_use_case(methodology_fields={}), View("business", "normal"))
        assert exc_info.value.name == "business_value"


class TestRenderView:
    def test_heading_and_front_matter(self, renderer: Renderer) -> None:
        text = renderer.render_view(_use_case(), View("business", "normal")).text
        metadata, body = parse_front_matter(text)
        assert metadata["id"] == "UC-AUT-001"
        assert metadata["priority"] == "high"
        assert metadata["methodology"] == "business"
        assert metadata["version"] == 1
        assert body.lstrip().startswith("# UC-AUT-001: User Login")
        assert "Fewer support calls" in body

    def test_front_matter_matches_source(self, renderer: Renderer) -> None:
        use_case = _use_case()
        metadata, _ = parse_front_matter(renderer.render_view(use_case, View("business", "normal")).text)
        assert metadata["created_at"] == use_case.metadata.created_at.isoformat()  # type: ignore[union-attr]
        assert metadata["updated_at"] == use_case.metadata.updated_at.isoformat()  # type: ignore[union-attr]

    def test_scenarios_conditions_references(self, renderer: Renderer) -> None:
        use_case = _use_case()
        scenario = use_case.add_scenario("Happy Path", persona="returning-customer")
        scenario.append_step("User", "Enters credentials", receiver="System", expected_result="Accepted")
        scenario.status = Status.TESTED
        use_case.preconditions.append(Condition("User is registered"))
        use_case.add_reference(UseCaseReference("UC-REG-001", "depends_on"))

        text = renderer.render_view(use_case, View("business", "normal")).text
        assert "### UC-AUT-001-S01: Happy Path" in text
        assert "| 1 | User → System | Enters credentials | Accepted |" in text
        assert "*Persona:* returning-customer" in text
        assert "1. User is registered" in text
        assert "**Depends on** UC-REG-001" in text
        assert "Tested" in text

    @pytest.mark.parametrize("methodology", ["business", "developer", "feature", "tester"])
    @pytest.mark.parametrize("level", ["normal", "advanced"])
    def test_every_bundled_template_renders(
        self, renderer: Renderer, methodology: str, level: str
    ) -> None:
        use_case = _use_case(views=[View(methodology, level)], methodology_fields={})
        rendered = renderer.render_view(use_case, View(methodology, level))
        assert "# UC-AUT-001: User Login" in rendered.text

    def test_render_is_deterministic(self, renderer: Renderer) -> None:
        use_case = _use_case()
        first = renderer.render_view(use_case, View("business", "normal")).text
        second = renderer.render_view(use_case, View("business", "normal")).text
        assert first == second

    def test_missing_template(self, renderer: Renderer, project: Path) -> None:
        (project / ".config" / ".mucm" / "templates" / "methodologies" / "tester" / "uc_normal.md.j2").unlink()
        with pytest.raises(NotFoundError) as exc_info:
            renderer.render_view(_use_case(), View("tester", "normal"))
        assert exc_info.value.code == "template_not_found"

    def test_broken_template(self, renderer: Renderer, project: Path) -> None:
        path = project / ".config" / ".mucm" / "templates" / "methodologies" / "tester" / "uc_normal.md.j2"
        path.write_text("{% for x in %}\n")
        with pytest.raises(RenderError):
            renderer.render_view(_use_case(), View("tester", "normal"))


class TestOverview:
    def test_summary(self, renderer: Renderer) -> None:
        billing = _use_case(id="UC-BIL-001", title="Refund", category="billing")
        scenario = billing.add_scenario("Refund approved")
        scenario.status = Status.DEPRECATED
        context = renderer.overview_context([_use_case(), billing], "Shop")
        assert context["total"] == 2
        assert [c["name"] for c in context["categories"]] == ["authentication", "billing"]
        assert context["categories"][1]["use_cases"][0]["aggregated_status"] == "deprecated"
        assert context["status_counts"]["deprecated"] == 1

    def test_render(self, renderer: Renderer) -> None:
        text = renderer.render_overview([_use_case()], "Shop")
        assert text.startswith("# Shop: Use Cases")
        assert "1 use case across 1 category." in text
        assert "authentication/UC-AUT-001-business-normal.md" in text


class TestScaffoldTemplate:
    def test_python_scaffold(self, renderer: Renderer) -> None:
        use_case = _use_case()
        use_case.add_scenario("Happy Path").append_step("User", "Enters credentials")
        code, extension = renderer.render_scaffold(use_case, "python")
        assert extension == "py"
        assert "def test_uc_aut_001_s01_happy_path() -> None:" in code
        assert "# 1. User: Enters credentials" in code

    def test_unknown_language(self, renderer: Renderer) -> None:
        with pytest.raises(NotFoundError):
            renderer.render_scaffold(_use_case(), "cobol")


class TestProjectionComparison:
    def test_strip_generated_at(self) -> None:
        text = "---\nid: UC-AUT-001\ngenerated_at: '2026-01-01T00:00:00+00:00'\n---\n\nbody\n"
        assert strip_generated_at(text) == "---\nid: UC-AUT-001\n---\n\nbody\n"

    def test_volatile_keys_ignored(self) -> None:
        left = "---\nid: A\nversion: 1\ngenerated_at: x\n---\n\nbody\n"
        right = "---\nid: A\nversion: 4\ngenerated_at: y\n---\n\nbody\n"
        assert same_projection(left, right)

    def test_body_difference_detected(self) -> None:
        left = "---\nid: A\n---\n\nbody\n"
        right = "---\nid: A\n---\n\nother body\n"
        assert not same_projection(left, right)
