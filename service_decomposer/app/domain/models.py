"""
Data models for the Decomposer service.

Wire format is camelCase (the mobile client's JSON contract); attributes
are snake_case and mapped through an alias generator.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from shared.errors import ValidationError


MAX_TASK_LENGTH = 500
MAX_STEP_LENGTH = 300
MAX_TASK_CONTEXT_LENGTH = 500
DEFAULT_STEP_MINUTES = 5
DEFAULT_ENCOURAGEMENT = "You've got this!"
UNLIMITED = -1


class CamelModel(BaseModel):
    """Base model serialising to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Style(str, Enum):
    """Instruction presets controlling step granularity and tone."""
    STANDARD = "standard"
    QUICK = "quick"
    GENTLE = "gentle"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class EnergyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskContext(CamelModel):
    """Optional hints about when and how the user is working."""

    time_of_day: Optional[TimeOfDay] = None
    energy: Optional[EnergyLevel] = None

    @field_validator("time_of_day", mode="before")
    @classmethod
    def _known_time_of_day(cls, value):
        return value if isinstance(value, str) and value in {t.value for t in TimeOfDay} else None

    @field_validator("energy", mode="before")
    @classmethod
    def _known_energy(cls, value):
        return value if isinstance(value, str) and value in {e.value for e in EnergyLevel} else None


class DecomposeRequest(CamelModel):
    """Validated body of ``POST /v1/decompose``."""

    task: str
    style: Style = Style.STANDARD
    context: Optional[TaskContext] = None

    @field_validator("task", mode="before")
    @classmethod
    def _check_task(cls, value):
        if not isinstance(value, str) or not value.strip():
            raise ValueError("task is required")
        if len(value) > MAX_TASK_LENGTH:
            raise ValueError(f"task exceeds {MAX_TASK_LENGTH} characters")
        return value.strip()

    @field_validator("style", mode="before")
    @classmethod
    def _default_style(cls, value):
        # Absent or empty means standard; anything else must be a known style
        if value is None or value == "":
            return Style.STANDARD
        return value

    @field_validator("context", mode="before")
    @classmethod
    def _ignore_malformed_context(cls, value):
        return value if isinstance(value, dict) else None

    @classmethod
    def from_body(cls, body: Any) -> "DecomposeRequest":
        if not isinstance(body, dict):
            raise ValidationError(f"Invalid request: task is required (max {MAX_TASK_LENGTH} chars)")
        try:
            return cls.model_validate(body)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid request: task is required (max {MAX_TASK_LENGTH} chars)"
            ) from exc


class SubStepsRequest(CamelModel):
    """Validated body of ``POST /v1/substeps``."""

    step: str
    task_context: Optional[str] = None

    @classmethod
    def from_body(cls, body: Any) -> "SubStepsRequest":
        if not isinstance(body, dict):
            raise ValidationError("Invalid request: step is required")

        step = body.get("step")
        if not isinstance(step, str) or not step.strip():
            raise ValidationError("Invalid request: step is required")
        if len(step) > MAX_STEP_LENGTH:
            raise ValidationError(f"Step text too long (max {MAX_STEP_LENGTH} chars)")

        task_context = body.get("taskContext")
        if not isinstance(task_context, str) or not task_context.strip():
            task_context = None
        else:
            task_context = task_context.strip()[:MAX_TASK_CONTEXT_LENGTH]

        return cls(step=step.strip(), task_context=task_context)


class Step(CamelModel):
    """One concrete action with its time estimate."""

    action: str
    estimated_minutes: int = Field(default=DEFAULT_STEP_MINUTES, ge=1)

    @classmethod
    def normalize(cls, raw: Union[str, Dict[str, Any]]) -> "Step":
        """Accept either a bare string or an ``{action, estimatedMinutes}`` object."""
        if isinstance(raw, str):
            if not raw.strip():
                raise ValueError("step text is blank")
            return cls(action=raw.strip(), estimated_minutes=DEFAULT_STEP_MINUTES)
        if isinstance(raw, dict):
            action = raw.get("action")
            if not isinstance(action, str) or not action:
                raise ValueError("step object is missing an action")
            return cls(action=action, estimated_minutes=_coerce_minutes(raw.get("estimatedMinutes")))
        raise ValueError(f"unsupported step type: {type(raw).__name__}")


def _coerce_minutes(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_STEP_MINUTES
    try:
        minutes = int(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_STEP_MINUTES
    return minutes if minutes >= 1 else DEFAULT_STEP_MINUTES


class DecomposedTask(CamelModel):
    """A task broken into ordered steps."""

    title: str
    steps: List[Step]
    total_estimated_minutes: int
    encouragement: str

    @classmethod
    def build(cls, title: str, steps: List[Step], encouragement: str) -> "DecomposedTask":
        """Build a task, deriving the total from the individual step estimates."""
        return cls(
            title=title,
            steps=steps,
            total_estimated_minutes=sum(step.estimated_minutes for step in steps),
            encouragement=encouragement,
        )


class DecompositionResult(CamelModel):
    """Outcome of a decomposition: either a task or an error message."""

    success: bool
    task: Optional[DecomposedTask] = None
    cached: Optional[bool] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, task: DecomposedTask) -> "DecompositionResult":
        return cls(success=True, task=task, cached=False)

    @classmethod
    def failure(cls, error: str) -> "DecompositionResult":
        return cls(success=False, error=error)


class SubStepsResult(CamelModel):
    """Outcome of breaking one stuck step into micro-actions."""

    success: bool
    substeps: Optional[List[str]] = None
    encouragement: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "SubStepsResult":
        return cls(success=False, error=error)


class TokenClaims(CamelModel):
    """Claims carried by a device identity token.

    Issue and expiry times use the registered JWT claim names.
    """

    device_id: str
    is_premium: bool = False
    user_id: Optional[str] = None
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")


class QuotaStatus(CamelModel):
    allowed: bool
    used: int
    limit: int
    resets_at: str


class UsageStats(CamelModel):
    used: int
    limit: int
    resets_at: str
    is_premium: bool


class RateLimitEntry(CamelModel):
    """Per-device counter for one UTC day."""

    count: int = Field(default=0, ge=0)
    date: str
