"""Acceptance tests for source records edited outside the tool."""

import tomllib
from datetime import date
from pathlib import Path

import pytest

from mucm.coordinator import Coordinator

pytestmark = pytest.mark.acceptance

SOURCE = Path("use-cases-data") / "authentication" / "UC-AUT-001.toml"


class TestUnknownKeysSurviveUpdates:
    def test_keys_kept(self, coordinator: Coordinator, login: str, project: Path) -> None:
        path = project / SOURCE
        path.write_text('owner_team = "identity"\n' + path.read_text())
        coordinator.update(login, description="Now with SSO")
        data = tomllib.loads(path.read_text())
        assert data["owner_team"] == "identity"
        assert data["description"] == "Now with SSO"

    def test_extra_keys_reach_the_render(self, coordinator: Coordinator, login: str, project: Path) -> None:
        path = project / SOURCE
        path.write_text('owner_team = "identity"\n' + path.read_text())
        context = coordinator.renderer.build_context(
            coordinator.get_use_case(login), coordinator.get_use_case(login).views[0]
        )
        assert context.values["owner_team"] == "identity"

    def test_keys_outside_field_kinds_kept(self, coordinator: Coordinator, login: str, project: Path) -> None:
        path = project / SOURCE
        path.write_text("reviewed_on = 2026-01-02\nratings = [1, 2]\n" + path.read_text())
        assert coordinator.store.load_all().errors == []

        result = coordinator.update(login, priority="high")
        assert "parse_error" not in [w.kind for w in result.warnings]
        data = tomllib.loads(path.read_text())
        assert data["reviewed_on"] == date(2026, 1, 2)
        assert data["ratings"] == [1, 2]
        assert data["priority"] == "high"

        use_case = coordinator.get_use_case(login)
        assert use_case.preserved == {"reviewed_on": date(2026, 1, 2), "ratings": [1, 2]}
        assert use_case.extra == {}
        context = coordinator.renderer.build_context(use_case, use_case.views[0])
        assert "ratings" not in context.values


class TestStaleViewsReported:
    def test_source_edit_marks_view_stale(self, coordinator: Coordinator, login: str, project: Path) -> None:
        coordinator.update_methodology_fields(login, "business", {"business_value": "Retention"})
        path = project / SOURCE
        path.write_text(path.read_text().replace('title = "User Login"', 'title = "Sign In"'))
        kinds = [d.kind for d in coordinator.validate(login)]
        assert kinds == ["stale_view"]
        coordinator.regenerate(login)
        assert coordinator.validate(login) == []
