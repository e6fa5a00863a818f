"""Read rendered views back: front matter and body."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import frontmatter
import yaml

from mucm.errors import RecordParseError, StoreIOError
from mucm.renderer import GENERATED_AT_KEY


def parse_front_matter(text: str, source: str = "<text>") -> tuple[dict[str, Any], str]:
    """Split a rendered view into its front-matter mapping and Markdown body."""
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as exc:
        raise RecordParseError(source, f"invalid front matter: {exc}") from exc
    return dict(post.metadata), post.content


def read_front_matter(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreIOError(f"Cannot read {path}: {exc}") from exc
    metadata, _ = parse_front_matter(text, str(path))
    return metadata


def strip_generated_at(text: str) -> str:
    """Drop the ``generated_at`` line so two renders can be compared."""
    prefix = f"{GENERATED_AT_KEY}:"
    return "".join(
        line for line in text.splitlines(keepends=True) if not line.startswith(prefix)
    )


# Front-matter keys that change on every save or render without changing content.
VOLATILE_KEYS = (GENERATED_AT_KEY, "version", "updated_at")


def same_projection(left: str, right: str) -> bool:
    """Compare two renders of a view, ignoring volatile front-matter keys."""
    left_meta, left_body = parse_front_matter(left)
    right_meta, right_body = parse_front_matter(right)
    for key in VOLATILE_KEYS:
        left_meta.pop(key, None)
        right_meta.pop(key, None)
    return left_meta == right_meta and left_body == right_body
