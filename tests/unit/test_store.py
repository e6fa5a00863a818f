"""Unit tests for mucm.store."""

import os
from pathlib import Path

import pytest

from mucm.errors import DuplicateIdError, NotFoundError
from mucm.models import Actor, ActorKind, UseCase, View
from mucm.store import ActorStore, SourceStore, atomic_write


def _use_case(identifier: str = "UC-AUT-001", category: str = "authentication") -> UseCase:
    return UseCase(id=identifier, title="User Login", category=category, views=[View("business", "normal")])


@pytest.fixture
def store(tmp_path: Path) -> SourceStore:
    return SourceStore(tmp_path / "src", tmp_path / "docs")


class TestAtomicWrite:
    def test_creates_parents(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "file.md"
        atomic_write(target, "hello\n")
        assert target.read_text() == "hello\n"

    def test_replaces_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        target = tmp_path / "file.md"
        atomic_write(target, "one\n")
        atomic_write(target, "two\n")
        assert target.read_text() == "two\n"
        assert [p.name for p in tmp_path.iterdir()] == ["file.md"]

    def test_new_file_is_group_and_other_readable(self, tmp_path: Path) -> None:
        target = tmp_path / "file.md"
        previous = os.umask(0o022)
        try:
            atomic_write(target, "hello\n")
        finally:
            os.umask(previous)
        mode = target.stat().st_mode & 0o777
        assert mode == 0o644
        assert mode & 0o044 == 0o044

    def test_existing_mode_is_kept(self, tmp_path: Path) -> None:
        target = tmp_path / "file.md"
        target.write_text("one\n")
        target.chmod(0o640)
        atomic_write(target, "two\n")
        assert target.stat().st_mode & 0o777 == 0o640
        assert target.read_text() == "two\n"


class TestSourceStore:
    def test_paths(self, store: SourceStore, tmp_path: Path) -> None:
        use_case = _use_case()
        assert store.source_path(use_case) == tmp_path / "src" / "authentication" / "UC-AUT-001.toml"
        assert (
            store.markdown_path(use_case, View("developer", "advanced"))
            == tmp_path / "docs" / "authentication" / "UC-AUT-001-developer-advanced.md"
        )
        assert store.overview_path() == tmp_path / "docs" / "README.md"

    def test_save_and_load(self, store: SourceStore) -> None:
        use_case = _use_case()
        store.save_source_only(use_case, touch=False)
        assert store.get("uc-aut-001") == use_case
        assert store.exists("UC-AUT-001")

    def test_save_touches(self, store: SourceStore) -> None:
        use_case = _use_case()
        store.save_source_only(use_case, touch=False)
        store.save_source_only(use_case)
        assert store.get("UC-AUT-001").metadata.version == 2

    def test_create_refuses_existing(self, store: SourceStore) -> None:
        store.save_source_only(_use_case(), touch=False, create=True)
        with pytest.raises(DuplicateIdError):
            store.save_source_only(_use_case(), touch=False, create=True)

    def test_category_change_moves_file(self, store: SourceStore, tmp_path: Path) -> None:
        use_case = _use_case()
        store.save_source_only(use_case, touch=False)
        use_case.category = "security"
        store.save_source_only(use_case)
        assert not (tmp_path / "src" / "authentication" / "UC-AUT-001.toml").exists()
        assert (tmp_path / "src" / "security" / "UC-AUT-001.toml").exists()

    def test_get_missing(self, store: SourceStore) -> None:
        assert store.load_by_id("UC-AUT-404") is None
        with pytest.raises(NotFoundError) as exc_info:
            store.get("UC-AUT-404")
        assert exc_info.value.code == "use_case_not_found"

    def test_load_all_skips_bad_records(self, store: SourceStore, tmp_path: Path) -> None:
        store.save_source_only(_use_case(), touch=False)
        store.save_source_only(_use_case("UC-BIL-001", "billing"), touch=False)
        broken = tmp_path / "src" / "billing" / "UC-BIL-002.toml"
        broken.write_text("id = \n")
        invalid = tmp_path / "src" / "billing" / "UC-BIL-003.toml"
        invalid.write_text('id = "UC-BIL-003"\ntitle = ""\ncategory = "billing"\n')

        result = store.load_all()
        assert sorted(u.id for u in result.use_cases) == ["UC-AUT-001", "UC-BIL-001"]
        assert sorted(Path(e.file).name for e in result.errors) == [
            "UC-BIL-002.toml",
            "UC-BIL-003.toml",
        ]
        assert all(e.code == "parse_error" for e in result.errors)
        assert not result.success

    def test_load_all_empty(self, store: SourceStore) -> None:
        result = store.load_all()
        assert result.use_cases == []
        assert result.success

    def test_delete_removes_source_and_views(self, store: SourceStore, tmp_path: Path) -> None:
        use_case = _use_case()
        store.save_source_only(use_case, touch=False)
        store.save_markdown_only(use_case, View("business", "normal"), "# business\n")
        store.save_markdown_only(use_case, View("tester", "normal"), "# tester\n")
        neighbour = _use_case("UC-AUT-010")
        store.save_markdown_only(neighbour, View("business", "normal"), "# other\n")

        removed = store.delete("UC-AUT-001")
        assert len(removed) == 3
        assert not store.exists("UC-AUT-001")
        assert store.rendered_files(use_case) == []
        assert (tmp_path / "docs" / "authentication" / "UC-AUT-010-business-normal.md").exists()

    def test_delete_missing(self, store: SourceStore) -> None:
        with pytest.raises(NotFoundError):
            store.delete("UC-AUT-001")

    def test_move_markdown(self, store: SourceStore, tmp_path: Path) -> None:
        use_case = _use_case()
        store.save_markdown_only(use_case, View("business", "normal"), "# old\n")
        removed = store.move_markdown(use_case, "authentication")
        assert [p.name for p in removed] == ["UC-AUT-001-business-normal.md"]

    def test_delete_markdown_missing_is_none(self, store: SourceStore) -> None:
        assert store.delete_markdown(_use_case(), View("tester", "normal")) is None

    def test_actor_records_are_not_use_cases(self, tmp_path: Path) -> None:
        store = SourceStore(tmp_path / "src", tmp_path / "docs", actor_dir=tmp_path / "src" / "actors")
        store.save_source_only(_use_case(), touch=False)
        ActorStore(tmp_path / "src" / "actors").save(Actor(id="admin", name="Admin"))

        result = store.load_all()
        assert [u.id for u in result.use_cases] == ["UC-AUT-001"]
        assert result.errors == []
        assert store.find_source("UC-AUT-001") == tmp_path / "src" / "authentication" / "UC-AUT-001.toml"

    def test_actor_directory_is_a_reserved_category(self, tmp_path: Path) -> None:
        store = SourceStore(tmp_path / "src", tmp_path / "docs", actor_dir=tmp_path / "src" / "actors")
        assert store.is_reserved_category("actors")
        assert not store.is_reserved_category("authentication")
        assert not SourceStore(tmp_path / "src", tmp_path / "docs").is_reserved_category("actors")


class TestActorStore:
    def test_save_load_delete(self, tmp_path: Path) -> None:
        actors = ActorStore(tmp_path / "actors")
        actor = Actor(id="database", name="Database", kind=ActorKind.SYSTEM, emoji="💾")
        actors.save(actor)
        assert actors.load_by_id("database") == actor
        assert actors.ids() == {"database"}
        loaded, errors = actors.load_all()
        assert loaded == [actor]
        assert errors == []
        actors.delete("database")
        assert actors.load_by_id("database") is None

    def test_bad_actor_skipped(self, tmp_path: Path) -> None:
        actors = ActorStore(tmp_path / "actors")
        actors.save(Actor(id="api", name="API", kind="system"))
        (tmp_path / "actors" / "broken.toml").write_text('name = "No id"\n')
        loaded, errors = actors.load_all()
        assert [a.id for a in loaded] == ["api"]
        assert len(errors) == 1

    def test_delete_missing(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            ActorStore(tmp_path / "actors").delete("ghost")
        assert exc_info.value.code == "actor_not_found"
