"""Filesystem persistence for source records, rendered views and actors.

Layout::

    <source_dir>/<category>/<id>.toml
    <use_case_dir>/<category>/<id>-<methodology>-<level>.md
    <use_case_dir>/README.md
    <actor_dir>/<actor-id>.toml

All writes go through :func:`atomic_write`: a temporary file in the target
directory is renamed over the destination, so readers only ever see the old
or the new file. The store assumes a single writer process.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from mucm.errors import (
    DuplicateIdError,
    MucmError,
    NotFoundError,
    RecordParseError,
    StoreIOError,
)
from mucm.ids import canonicalize
from mucm.models import Actor, UseCase, View
from mucm.serialization import dumps_actor, dumps_use_case, loads_actor, loads_use_case

log = structlog.get_logger(__name__)

OVERVIEW_FILE = "README.md"


def _target_mode(path: Path) -> int:
    """Mode for the replacement: the current file's, else what ``open`` would give."""
    try:
        return path.stat().st_mode & 0o777
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def atomic_write(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` via a temp file in the same directory.

    ``mkstemp`` creates the temp file as 0600; it is widened to the mode the
    destination has (or would get from a plain write) before the rename.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        mode = _target_mode(path)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as exc:
        raise StoreIOError(f"Cannot write {path}: {exc}") from exc
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(text)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise StoreIOError(f"Cannot write {path}: {exc}") from exc
    log.debug("file written", path=str(path))


@dataclass
class LoadResult:
    """Records that loaded plus one error per file that did not."""

    use_cases: list[UseCase] = field(default_factory=list)
    errors: list[RecordParseError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class SourceStore:
    """Canonical use case records and their rendered Markdown."""

    def __init__(
        self,
        source_dir: Path,
        use_case_dir: Path,
        extension: str = "toml",
        actor_dir: Path | None = None,
    ) -> None:
        self.source_dir = source_dir
        self.use_case_dir = use_case_dir
        self.extension = extension
        self.actor_dir = actor_dir

    def is_reserved_category(self, category: str) -> bool:
        """Whether records of ``category`` would land in the actor directory."""
        if self.actor_dir is None:
            return False
        return (self.source_dir / category).resolve() == self.actor_dir.resolve()

    def _record_paths(self, pattern: str) -> list[Path]:
        if not self.source_dir.is_dir():
            return []
        return sorted(
            p for p in self.source_dir.glob(pattern) if not self.is_reserved_category(p.parent.name)
        )

    # -- paths

    def source_path(self, use_case: UseCase) -> Path:
        return self.source_dir / use_case.category / f"{use_case.id}.{self.extension}"

    def category_markdown_dir(self, category: str) -> Path:
        return self.use_case_dir / category

    def markdown_path(self, use_case: UseCase, view: View) -> Path:
        return (
            self.category_markdown_dir(use_case.category)
            / f"{use_case.id}-{view.methodology}-{view.level}.md"
        )

    def overview_path(self) -> Path:
        return self.use_case_dir / OVERVIEW_FILE

    def find_source(self, use_case_id: str) -> Path | None:
        matches = self._record_paths(f"*/{use_case_id}.{self.extension}")
        return matches[0] if matches else None

    def rendered_files(self, use_case: UseCase) -> list[Path]:
        directory = self.category_markdown_dir(use_case.category)
        if not directory.is_dir():
            return []
        return sorted(directory.glob(f"{use_case.id}-*.md"))

    # -- reads

    def _parse(self, path: Path) -> UseCase:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreIOError(f"Cannot read {path}: {exc}") from exc
        try:
            return loads_use_case(text)
        except (MucmError, KeyError, TypeError, ValueError, AttributeError) as exc:
            raise RecordParseError(str(path), str(exc)) from exc

    def load_all(self) -> LoadResult:
        """Parse every record; a bad file is reported and skipped."""
        result = LoadResult()
        for path in self._record_paths(f"*/*.{self.extension}"):
            try:
                use_case = self._parse(path)
            except RecordParseError as exc:
                log.warning("skipping unreadable record", file=exc.file, detail=exc.detail)
                result.errors.append(exc)
                continue
            if path.stem != use_case.id or path.parent.name != use_case.category:
                log.warning("record stored under unexpected path", file=str(path), id=use_case.id)
            result.use_cases.append(use_case)
        return result

    def load_by_id(self, use_case_id: str) -> UseCase | None:
        path = self.find_source(canonicalize(use_case_id))
        if path is None:
            return None
        return self._parse(path)

    def get(self, use_case_id: str) -> UseCase:
        use_case = self.load_by_id(use_case_id)
        if use_case is None:
            raise NotFoundError(f"Use case not found: {use_case_id}", code="use_case_not_found")
        return use_case

    def exists(self, use_case_id: str) -> bool:
        return self.find_source(canonicalize(use_case_id)) is not None

    # -- writes

    def save_source_only(
        self,
        use_case: UseCase,
        touch: bool = True,
        update_timestamp: bool = True,
        create: bool = False,
    ) -> Path:
        """Persist ``use_case``; with ``touch`` the mutation is recorded first.

        ``create`` refuses to overwrite an existing record with the same id.
        When the category changed, the record at the old location is removed
        after the new file is in place.
        """
        previous = self.find_source(use_case.id)
        if create and previous is not None:
            raise DuplicateIdError(f"Use case {use_case.id} already exists")
        if touch:
            use_case.metadata.touch(update_timestamp)
        path = self.source_path(use_case)
        atomic_write(path, dumps_use_case(use_case))
        if previous is not None and previous != path:
            try:
                previous.unlink()
            except OSError as exc:
                raise StoreIOError(f"Cannot remove {previous}: {exc}") from exc
            log.info("record moved", id=use_case.id, source=str(previous), target=str(path))
        return path

    def save_markdown_only(self, use_case: UseCase, view: View, text: str) -> Path:
        path = self.markdown_path(use_case, view)
        atomic_write(path, text)
        return path

    def save_overview(self, text: str) -> Path:
        path = self.overview_path()
        atomic_write(path, text)
        return path

    def delete_markdown(self, use_case: UseCase, view: View) -> Path | None:
        path = self.markdown_path(use_case, view)
        if not path.exists():
            return None
        try:
            path.unlink()
        except OSError as exc:
            raise StoreIOError(f"Cannot remove {path}: {exc}") from exc
        return path

    def move_markdown(self, use_case: UseCase, old_category: str) -> list[Path]:
        """Remove rendered files left in ``old_category`` after a category change."""
        old_dir = self.category_markdown_dir(old_category)
        removed: list[Path] = []
        if not old_dir.is_dir():
            return removed
        for path in sorted(old_dir.glob(f"{use_case.id}-*.md")):
            try:
                path.unlink()
            except OSError as exc:
                raise StoreIOError(f"Cannot remove {path}: {exc}") from exc
            removed.append(path)
        return removed

    def delete(self, use_case_id: str) -> list[Path]:
        """Remove the source record and every ``<id>-*.md`` file of its category."""
        use_case = self.get(use_case_id)
        removed: list[Path] = []
        source = self.find_source(use_case.id)
        targets = ([source] if source is not None else []) + self.rendered_files(use_case)
        for path in targets:
            try:
                path.unlink()
            except OSError as exc:
                raise StoreIOError(f"Cannot remove {path}: {exc}") from exc
            removed.append(path)
        log.info("use case deleted", id=use_case.id, files=len(removed))
        return removed


class ActorStore:
    """One record per actor under the actor directory."""

    def __init__(self, actor_dir: Path, extension: str = "toml") -> None:
        self.actor_dir = actor_dir
        self.extension = extension

    def path_for(self, actor_id: str) -> Path:
        return self.actor_dir / f"{actor_id}.{self.extension}"

    def load_all(self) -> tuple[list[Actor], list[RecordParseError]]:
        actors: list[Actor] = []
        errors: list[RecordParseError] = []
        if not self.actor_dir.is_dir():
            return actors, errors
        for path in sorted(self.actor_dir.glob(f"*.{self.extension}")):
            try:
                actors.append(loads_actor(path.read_text(encoding="utf-8")))
            except OSError as exc:
                raise StoreIOError(f"Cannot read {path}: {exc}") from exc
            except (MucmError, KeyError, TypeError, ValueError) as exc:
                log.warning("skipping unreadable actor", file=str(path), detail=str(exc))
                errors.append(RecordParseError(str(path), str(exc)))
        return actors, errors

    def load_by_id(self, actor_id: str) -> Actor | None:
        path = self.path_for(actor_id)
        if not path.exists():
            return None
        try:
            return loads_actor(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StoreIOError(f"Cannot read {path}: {exc}") from exc
        except (MucmError, KeyError, TypeError, ValueError) as exc:
            raise RecordParseError(str(path), str(exc)) from exc

    def ids(self) -> set[str]:
        if not self.actor_dir.is_dir():
            return set()
        return {p.stem for p in self.actor_dir.glob(f"*.{self.extension}")}

    def save(self, actor: Actor, touch: bool = False) -> Path:
        if touch:
            actor.metadata.touch()
        path = self.path_for(actor.id)
        atomic_write(path, dumps_actor(actor))
        return path

    def delete(self, actor_id: str) -> Path:
        path = self.path_for(actor_id)
        if not path.exists():
            raise NotFoundError(f"Actor not found: {actor_id}", code="actor_not_found")
        try:
            path.unlink()
        except OSError as exc:
            raise StoreIOError(f"Cannot remove {path}: {exc}") from exc
        return path
