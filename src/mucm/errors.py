"""Exception hierarchy and consistency diagnostics for mucm."""

from __future__ import annotations

from dataclasses import dataclass


class MucmError(Exception):
    """Base class for every error raised by mucm.

    ``code`` is a stable snake_case identifier callers can match on;
    ``exit_code`` is what the CLI exits with when the error escapes.
    """

    code = "error"
    exit_code = 1

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


# -- validation ------------------------------------------------------------


class ValidationError(MucmError):
    """User input does not satisfy the model or its invariants."""

    code = "validation_failed"


class TypeMismatchError(ValidationError):
    """A field value does not match the type declared by its schema."""

    code = "type_mismatch"

    def __init__(self, field_name: str, expected: str, value: object = None) -> None:
        super().__init__(
            f"Field '{field_name}' expects a value of type '{expected}', got {value!r}"
        )
        self.field = field_name
        self.expected = expected


class StatusTransitionError(ValidationError):
    code = "invalid_status_transition"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move scenario status from '{current}' to '{target}'")
        self.current = current
        self.target = target


class DuplicateIdError(ValidationError):
    """A freshly minted id is already taken; create retries on this."""

    code = "duplicate_id"


class ConfigError(ValidationError):
    code = "config_error"


class NotInitializedError(ValidationError):
    code = "not_initialized"


# -- not found -------------------------------------------------------------


class NotFoundError(MucmError):
    code = "not_found"


# -- system ----------------------------------------------------------------


class MucmSystemError(MucmError):
    """I/O, parse and render failures."""

    code = "system_error"
    exit_code = 2


class StoreIOError(MucmSystemError):
    code = "io_error"


class RecordParseError(MucmSystemError):
    code = "parse_error"

    def __init__(self, file: str, detail: str) -> None:
        super().__init__(f"{file}: {detail}")
        self.file = file
        self.detail = detail


class SerializationError(MucmSystemError):
    code = "serialization_error"


class MalformedDefinitionError(MucmSystemError):
    code = "malformed_definition"


class InheritanceCycleError(MalformedDefinitionError):
    code = "inheritance_cycle"

    def __init__(self, methodology: str, cycle: list[str]) -> None:
        super().__init__(
            f"Methodology '{methodology}' has an inheritance cycle: {' -> '.join(cycle)}"
        )
        self.methodology = methodology
        self.cycle = cycle


class RenderError(MucmSystemError):
    code = "render_error"

    def __init__(self, template: str, detail: str) -> None:
        super().__init__(f"Failed to render {template}: {detail}")
        self.template = template
        self.detail = detail


class MissingRequiredFieldError(RenderError):
    code = "missing_required_field"

    def __init__(self, template: str, name: str) -> None:
        super().__init__(template, f"required field '{name}' has no value and no default")
        self.name = name


class ProjectionError(MucmSystemError):
    """The source record was saved but some views failed to render."""

    code = "projection_failed"

    def __init__(self, use_case_id: str, failures: dict[str, str]) -> None:
        views = ", ".join(sorted(failures))
        super().__init__(
            f"{use_case_id} was saved but these views failed to render: {views}. "
            f"Run `mucm regenerate {use_case_id}` to retry."
        )
        self.use_case_id = use_case_id
        self.failures = failures


# -- warnings --------------------------------------------------------------


@dataclass(frozen=True)
class Diagnostic:
    """A consistency warning reported alongside a successful result."""

    kind: str
    message: str
    subject: str = ""

    def __str__(self) -> str:
        if self.subject:
            return f"[{self.kind}] {self.subject}: {self.message}"
        return f"[{self.kind}] {self.message}"
