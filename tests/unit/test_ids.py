"""Unit tests for mucm.ids."""

from pathlib import Path

import pytest

from mucm.errors import ValidationError
from mucm.ids import (
    canonicalize,
    category_code,
    mint_scenario_id,
    mint_use_case_id,
    observed_numbers_in_directory,
    parse,
    parse_scenario_id,
)
from mucm.models import Scenario, UseCase, View


def _use_case(identifier: str, category: str = "authentication") -> UseCase:
    return UseCase(
        id=identifier, title="Record", category=category, views=[View("business", "normal")]
    )


class TestCategoryCode:
    @pytest.mark.parametrize(
        ("category", "code"),
        [
            ("authentication", "AUT"),
            ("billing", "BIL"),
            ("ui", "UIX"),
            ("x", "XXX"),
            ("a1b2c3", "ABC"),
            ("user_management", "USE"),
            ("", "XXX"),
        ],
    )
    def test_code(self, category: str, code: str) -> None:
        assert category_code(category) == code


class TestParse:
    def test_parse_use_case_id(self) -> None:
        parsed = parse("UC-AUT-007")
        assert parsed.category_code == "AUT"
        assert parsed.number == 7

    def test_parse_is_case_tolerant(self) -> None:
        assert str(parse("uc-aut-001")) == "UC-AUT-001"

    def test_parse_rejects_garbage(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            parse("AUT-001")
        assert exc_info.value.code == "invalid_id"

    def test_parse_scenario_id(self) -> None:
        parsed = parse_scenario_id("UC-AUT-001-S02")
        assert parsed.use_case_id == "UC-AUT-001"
        assert parsed.number == 2

    def test_canonicalize_scenario(self) -> None:
        assert canonicalize("uc-bil-010-s03") == "UC-BIL-010-S03"

    def test_large_counters_keep_their_digits(self) -> None:
        assert str(parse("UC-AUT-1234")) == "UC-AUT-1234"


class TestMintUseCaseId:
    def test_empty_corpus_starts_at_one(self) -> None:
        assert mint_use_case_id("authentication", []) == "UC-AUT-001"

    @pytest.mark.parametrize("count", [1, 2, 9, 12])
    def test_after_n_records(self, count: int) -> None:
        records = [_use_case(f"UC-AUT-{n:03d}") for n in range(1, count + 1)]
        assert mint_use_case_id("authentication", records) == f"UC-AUT-{count + 1:03d}"

    def test_takes_max_not_count(self) -> None:
        records = [_use_case("UC-AUT-001"), _use_case("UC-AUT-005")]
        assert mint_use_case_id("authentication", records) == "UC-AUT-006"

    def test_other_categories_ignored(self) -> None:
        records = [_use_case("UC-BIL-004", category="billing")]
        assert mint_use_case_id("authentication", records) == "UC-AUT-001"

    def test_categories_sharing_a_code_do_not_collide(self) -> None:
        records = [_use_case("UC-AUT-001", category="authentication")]
        minted = mint_use_case_id("automation", records)
        assert minted == "UC-AUT-002"

    def test_markdown_files_are_observed(self, tmp_path: Path) -> None:
        (tmp_path / "UC-AUT-004-business-normal.md").write_text("# x\n")
        (tmp_path / "notes.md").write_text("not an id\n")
        (tmp_path / "UC-AUT-999.txt").write_text("wrong extension\n")
        assert mint_use_case_id("authentication", [], tmp_path) == "UC-AUT-005"

    def test_taken_ids_are_skipped(self) -> None:
        assert mint_use_case_id("authentication", [], taken=["UC-AUT-001"]) == "UC-AUT-002"


class TestObservedNumbers:
    def test_missing_directory(self, tmp_path: Path) -> None:
        assert observed_numbers_in_directory(tmp_path / "nope", "AUT") == []

    def test_legacy_single_file_names(self, tmp_path: Path) -> None:
        (tmp_path / "UC-AUT-003.md").write_text("")
        (tmp_path / "UC-BIL-008.md").write_text("")
        assert observed_numbers_in_directory(tmp_path, "AUT") == [3]


class TestMintScenarioId:
    def test_first_scenario(self) -> None:
        assert mint_scenario_id(_use_case("UC-AUT-001")) == "UC-AUT-001-S01"

    def test_one_past_highest(self) -> None:
        use_case = _use_case("UC-AUT-001")
        use_case.scenarios = [
            Scenario(id="UC-AUT-001-S01", title="One"),
            Scenario(id="UC-AUT-001-S04", title="Four"),
        ]
        assert mint_scenario_id(use_case) == "UC-AUT-001-S05"
