"""Configuration management for mucm projects."""

from __future__ import annotations

import copy
import shutil
import tomllib
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import tomli_w

from mucm.errors import ConfigError, NotInitializedError

CONFIG_DIR = Path(".config") / ".mucm"
CONFIG_FILE = "mucm.toml"
TEMPLATES_DIR = "templates"

DEFAULT_METHODOLOGIES = ["business", "developer", "feature", "tester"]
DEFAULT_ACTOR_FIELDS: dict[str, dict[str, list[str]]] = {
    "persona": {"required": ["goal"], "optional": ["context", "tech_comfort", "frustrations"]},
    "system": {"required": [], "optional": ["technology", "owner"]},
    "external": {"required": [], "optional": ["provider", "contact"]},
}


@dataclass
class ProjectConfig:
    name: str = "My Project"
    description: str = ""
    use_case_dir: str = "docs/use-cases"
    source_dir: str = "use-cases-data"
    actor_dir: str = "use-cases-data/actors"
    data_dir: str = ".config/.mucm/data"
    test_dir: str = "tests/use-cases"
    methodologies: list[str] = field(default_factory=lambda: list(DEFAULT_METHODOLOGIES))
    default_methodology: str = "business"
    test_language: str = "python"
    auto_set_created: bool = True
    auto_update_timestamps: bool = True
    actor_fields: dict[str, dict[str, list[str]]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_ACTOR_FIELDS)
    )
    source_extension: str = "toml"
    # Keys this version does not know about, kept for round-trip.
    unknown: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        if not self.methodologies:
            raise ConfigError("At least one methodology must be enabled")
        if self.default_methodology not in self.methodologies:
            raise ConfigError(
                f"Default methodology '{self.default_methodology}' is not among the enabled "
                f"methodologies: {', '.join(self.methodologies)}"
            )
        if self.source_extension != "toml":
            raise ConfigError(
                f"Unsupported source extension '{self.source_extension}'; only 'toml' is available"
            )


@dataclass
class ProjectPaths:
    """Absolute locations derived from a project root and its config."""

    root: Path
    config: ProjectConfig

    @property
    def config_dir(self) -> Path:
        return self.root / CONFIG_DIR

    @property
    def templates_dir(self) -> Path:
        return self.config_dir / TEMPLATES_DIR

    @property
    def use_case_dir(self) -> Path:
        return self.root / self.config.use_case_dir

    @property
    def source_dir(self) -> Path:
        return self.root / self.config.source_dir

    @property
    def actor_dir(self) -> Path:
        return self.root / self.config.actor_dir

    @property
    def data_dir(self) -> Path:
        return self.root / self.config.data_dir

    @property
    def test_dir(self) -> Path:
        return self.root / self.config.test_dir


def _config_path(project_root: Path) -> Path:
    return project_root / CONFIG_DIR / CONFIG_FILE


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table")
    return dict(value)


def config_to_dict(config: ProjectConfig) -> dict[str, Any]:
    data: dict[str, Any] = copy.deepcopy(config.unknown)
    known = {
        "project": {"name": config.name, "description": config.description},
        "directories": {
            "use_case_dir": config.use_case_dir,
            "source_dir": config.source_dir,
            "actor_dir": config.actor_dir,
            "data_dir": config.data_dir,
            "test_dir": config.test_dir,
        },
        "templates": {
            "methodologies": list(config.methodologies),
            "default_methodology": config.default_methodology,
            "test_language": config.test_language,
        },
        "metadata": {
            "auto_set_created": config.auto_set_created,
            "auto_update_timestamps": config.auto_update_timestamps,
        },
        "actor_fields": copy.deepcopy(config.actor_fields),
        "storage": {"source_extension": config.source_extension},
    }
    for section, values in known.items():
        merged = data.get(section, {})
        merged.update(values)
        data[section] = merged
    return data


def config_from_dict(data: dict[str, Any]) -> ProjectConfig:
    project = _section(data, "project")
    directories = _section(data, "directories")
    templates = _section(data, "templates")
    metadata = _section(data, "metadata")
    storage = _section(data, "storage")
    defaults = ProjectConfig()

    # Everything not mapped onto a dataclass field is carried in ``unknown``.
    known_keys = {
        "project": ("name", "description"),
        "directories": ("use_case_dir", "source_dir", "actor_dir", "data_dir", "test_dir"),
        "templates": ("methodologies", "default_methodology", "test_language"),
        "metadata": ("auto_set_created", "auto_update_timestamps"),
        "storage": ("source_extension",),
    }
    unknown: dict[str, Any] = {}
    for key, value in data.items():
        if key == "actor_fields":
            continue
        if key not in known_keys:
            unknown[key] = value
            continue
        leftovers = {k: v for k, v in value.items() if k not in known_keys[key]}
        if leftovers:
            unknown[key] = leftovers

    config = ProjectConfig(
        name=project.get("name", defaults.name),
        description=project.get("description", defaults.description),
        use_case_dir=directories.get("use_case_dir", defaults.use_case_dir),
        source_dir=directories.get("source_dir", defaults.source_dir),
        actor_dir=directories.get("actor_dir", defaults.actor_dir),
        data_dir=directories.get("data_dir", defaults.data_dir),
        test_dir=directories.get("test_dir", defaults.test_dir),
        methodologies=[str(m).lower() for m in templates.get("methodologies", defaults.methodologies)],
        default_methodology=str(
            templates.get("default_methodology", defaults.default_methodology)
        ).lower(),
        test_language=templates.get("test_language", defaults.test_language),
        auto_set_created=bool(metadata.get("auto_set_created", defaults.auto_set_created)),
        auto_update_timestamps=bool(
            metadata.get("auto_update_timestamps", defaults.auto_update_timestamps)
        ),
        actor_fields=_section(data, "actor_fields") if "actor_fields" in data else defaults.actor_fields,
        source_extension=storage.get("source_extension", defaults.source_extension),
        unknown=unknown,
    )
    config.validate()
    return config


def save_config(config: ProjectConfig, project_root: Path) -> Path:
    """Save project config to .config/.mucm/mucm.toml. Returns the config path."""
    config.validate()
    path = _config_path(project_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tomli_w.dumps(config_to_dict(config)), encoding="utf-8")
    return path


def load_config(project_root: Path) -> ProjectConfig:
    """Load project config from .config/.mucm/mucm.toml."""
    path = _config_path(project_root)
    if not path.exists():
        raise NotInitializedError(f"No config found at {path}")
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid configuration file {path}: {exc}") from exc
    return config_from_dict(data)


def is_initialized(project_root: Path) -> bool:
    """Check if the project is initialized for mucm."""
    return _config_path(project_root).exists()


def ensure_initialized(project_root: Path) -> ProjectConfig:
    """Ensure the project is initialized. Raises if not."""
    if not is_initialized(project_root):
        raise NotInitializedError("Project is not initialized. Run `mucm init` first.")
    return load_config(project_root)


def find_project_root(start: Path) -> Path | None:
    """Nearest directory at or above ``start`` holding a mucm config."""
    current = start.resolve()
    for candidate in (current, *current.parents):
        if is_initialized(candidate):
            return candidate
    return None


def bundled_templates() -> Path:
    """Location of the template set shipped with the package."""
    return Path(str(resources.files("mucm") / TEMPLATES_DIR))


def install_templates(
    destination: Path, methodologies: list[str], test_language: str, force: bool = False
) -> list[Path]:
    """Copy the bundled templates for ``methodologies`` into ``destination``.

    Files that already exist are left alone unless ``force`` is set, so
    local template edits survive a repeated ``init``. Returns written files.
    """
    source = bundled_templates()
    wanted: list[Path] = [Path("overview.md.j2")]
    wanted.extend(
        p.relative_to(source) for p in (source / "partials").rglob("*") if p.is_file()
    )
    wanted.extend(
        p.relative_to(source)
        for p in (source / "languages" / test_language).rglob("*")
        if p.is_file()
    )
    for methodology in methodologies:
        methodology_dir = source / "methodologies" / methodology
        if not methodology_dir.is_dir():
            raise ConfigError(f"No bundled templates for methodology '{methodology}'")
        wanted.extend(p.relative_to(source) for p in methodology_dir.rglob("*") if p.is_file())

    written: list[Path] = []
    for relative in wanted:
        target = destination / relative
        if target.exists() and not force:
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source / relative, target)
        written.append(target)
    return written


def init_project(
    project_root: Path,
    name: str | None = None,
    methodologies: list[str] | None = None,
    default_methodology: str | None = None,
    test_language: str = "python",
    force: bool = False,
) -> ProjectConfig:
    """Write the config, install templates and create the project directories.

    An existing config is kept (and only templates are refreshed) unless
    ``force`` is given.
    """
    if is_initialized(project_root) and not force:
        config = load_config(project_root)
    else:
        config = ProjectConfig(test_language=test_language)
        if name:
            config.name = name
        if methodologies:
            config.methodologies = [m.lower() for m in methodologies]
        config.default_methodology = (
            default_methodology.lower() if default_methodology else config.methodologies[0]
        )
        save_config(config, project_root)

    paths = ProjectPaths(project_root, config)
    install_templates(paths.templates_dir, config.methodologies, config.test_language, force)
    for directory in (paths.use_case_dir, paths.source_dir, paths.actor_dir, paths.data_dir):
        directory.mkdir(parents=True, exist_ok=True)
    return config
