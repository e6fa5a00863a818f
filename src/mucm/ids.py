"""Hierarchical identifiers for use cases and scenarios.

Use case ids look like ``UC-AUT-001``: a three letter code derived from the
category and a per-category counter. Scenario ids append ``-S01`` style
suffixes to their parent's id. Step orders are positional and never encoded
into ids.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple

from mucm.errors import DuplicateIdError, ValidationError

if TYPE_CHECKING:
    from mucm.models import UseCase

USE_CASE_ID_RE = re.compile(r"^UC-([A-Za-z]{3})-(\d{3,})$")
SCENARIO_ID_RE = re.compile(r"^(UC-[A-Za-z]{3}-\d{3,})-S(\d{2,})$")
# Rendered files are "<id>-<methodology>-<level>.md"; older layouts used "<id>.md".
_MARKDOWN_NAME_RE = re.compile(r"^UC-([A-Za-z]{3})-(\d{3,})(?:-.*)?\.md$")

# Bound on how far past the first candidate minting will search.
MAX_MINT_ATTEMPTS = 1000


class UseCaseId(NamedTuple):
    category_code: str
    number: int

    def __str__(self) -> str:
        return format_use_case_id(self.category_code, self.number)


class ScenarioId(NamedTuple):
    use_case_id: str
    number: int

    def __str__(self) -> str:
        return f"{self.use_case_id}-S{self.number:02d}"


def category_code(category: str) -> str:
    """First three alphabetic characters of the category, upper-cased, X-padded."""
    letters = [c for c in category.upper() if c.isascii() and c.isalpha()]
    return "".join(letters[:3]).ljust(3, "X")


def format_use_case_id(code: str, number: int) -> str:
    return f"UC-{code.upper()}-{number:03d}"


def parse(identifier: str) -> UseCaseId:
    """Parse a use case id; the category code is canonicalised to upper case."""
    match = USE_CASE_ID_RE.match(identifier.strip())
    if not match:
        raise ValidationError(
            f"'{identifier}' is not a use case id (expected UC-XXX-NNN)", code="invalid_id"
        )
    return UseCaseId(match.group(1).upper(), int(match.group(2)))


def parse_scenario_id(identifier: str) -> ScenarioId:
    match = SCENARIO_ID_RE.match(identifier.strip())
    if not match:
        raise ValidationError(
            f"'{identifier}' is not a scenario id (expected UC-XXX-NNN-SNN)",
            code="invalid_id",
        )
    parent = parse(match.group(1))
    return ScenarioId(str(parent), int(match.group(2)))


def canonicalize(identifier: str) -> str:
    """Upper-case the category code of a use case or scenario id."""
    stripped = identifier.strip()
    if SCENARIO_ID_RE.match(stripped):
        return str(parse_scenario_id(stripped))
    return str(parse(stripped))


def is_use_case_id(identifier: str) -> bool:
    return bool(USE_CASE_ID_RE.match(identifier))


def is_scenario_id(identifier: str) -> bool:
    return bool(SCENARIO_ID_RE.match(identifier))


def observed_numbers_in_directory(directory: Path | None, code: str) -> list[int]:
    """Counters of rendered files under ``directory`` carrying ``code``.

    Files that do not follow the naming scheme are skipped.
    """
    if directory is None or not directory.is_dir():
        return []
    numbers: list[int] = []
    for path in directory.iterdir():
        if not path.is_file():
            continue
        match = _MARKDOWN_NAME_RE.match(path.name)
        if match and match.group(1).upper() == code:
            numbers.append(int(match.group(2)))
    return numbers


def mint_use_case_id(
    category: str,
    existing_records: Iterable[UseCase],
    markdown_directory: Path | None = None,
    taken: Iterable[str] = (),
) -> str:
    """Mint the next free use case id for ``category``.

    The counter is one past the highest number observed either among stored
    records of the same category or among rendered files in the category's
    folder. Candidates that collide with any known id (including ``taken``)
    are skipped.
    """
    code = category_code(category)
    records = list(existing_records)
    all_ids = {r.id for r in records} | set(taken)

    observed = [0]
    for record in records:
        if record.category != category:
            continue
        try:
            parsed = parse(record.id)
        except ValidationError:
            continue
        if parsed.category_code == code:
            observed.append(parsed.number)
    observed.extend(observed_numbers_in_directory(markdown_directory, code))

    number = max(observed) + 1
    for _ in range(MAX_MINT_ATTEMPTS):
        candidate = format_use_case_id(code, number)
        if candidate not in all_ids:
            return candidate
        number += 1
    raise DuplicateIdError(f"Could not find a free id for category '{category}'")


def mint_scenario_id(parent: UseCase) -> str:
    """Next scenario id within ``parent``: one past the highest existing suffix."""
    highest = 0
    for scenario in parent.scenarios:
        try:
            highest = max(highest, parse_scenario_id(scenario.id).number)
        except ValidationError:
            continue
    return str(ScenarioId(parent.id, highest + 1))
