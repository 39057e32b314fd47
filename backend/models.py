from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Literal, Optional

PRIORITY_LEVELS = ("Low", "Medium", "High", "Critical")

MatchKind = Literal[
    "relative_day",
    "relative_week_day",
    "relative_week",
    "day_type",
    "specific_time",
    "recurring",
    "time_range",
    "relative_time",
    "specific_day",
    "specific_date",
    "relative_specific_day",
    "relative_date",
    "this_day",
]

# Rule-string day codes, same order as datetime.weekday()
RULE_DAY_CODES = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")
WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
POSITION_NUMBERS = {"first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5, "last": -1}


class MatchRecord(BaseModel):
    """One recognized temporal phrase. Produced per parse call, never mutated."""
    model_config = ConfigDict(frozen=True)

    kind: MatchKind
    payload: dict[str, Any] = Field(default_factory=dict)


class Recurrence(BaseModel):
    frequency: Literal["daily", "weekly", "monthly"]
    day: Optional[str] = None  # lowercase weekday name
    additional_day: Optional[str] = None  # "every tuesday and thursday"
    position: Optional[str] = None  # first..fifth or last, monthly only
    time_context: Optional[Literal["morning", "evening"]] = None
    weekdays_only: bool = False

    def to_rule(self) -> str:
        """
        Render the compact rule string stored on tasks.
        daily | weekdays | weekly | weekly:TUE,THU | monthly | monthly:-1:FRI
        """
        if self.weekdays_only:
            return "weekdays"
        if self.frequency == "daily":
            return "daily"
        if self.frequency == "weekly":
            days = [d for d in (self.day, self.additional_day) if d in WEEKDAY_NAMES]
            if not days:
                return "weekly"
            return "weekly:" + ",".join(RULE_DAY_CODES[WEEKDAY_NAMES.index(d)] for d in days)
        if self.day in WEEKDAY_NAMES and self.position in POSITION_NUMBERS:
            code = RULE_DAY_CODES[WEEKDAY_NAMES.index(self.day)]
            return f"monthly:{POSITION_NUMBERS[self.position]}:{code}"
        return "monthly"


class ResolvedTemporal(BaseModel):
    instant: str  # ISO-8601, millisecond precision
    has_date: bool = False
    has_time: bool = False
    recurrence: Optional[Recurrence] = None


class Task(BaseModel):
    id: str
    title: str
    description: str = ""
    priority: str = "Medium"
    priority_reasoning: Optional[str] = None
    status: str = "TODO"
    due_date: Optional[str] = None  # ISO format datetime string
    start_date: Optional[str] = None
    completion_date: Optional[str] = None
    reminder: Optional[str] = None
    recurrence: Optional[str] = None  # rule string, see Recurrence.to_rule
    tags: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str  # ISO format datetime string
    last_modified: str


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Literal["Low", "Medium", "High", "Critical"]] = None
    status: Optional[Literal["TODO", "IN_PROGRESS", "COMPLETED", "BLOCKED"]] = None
    due_date: Optional[str] = None
    start_date: Optional[str] = None
    recurrence: Optional[str] = None
    reminder: Optional[str] = None
    tags: Optional[list[str]] = None
    dependencies: Optional[list[str]] = None


class ParseTaskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_input: str = Field(alias="userInput")
    request_source: str = Field(default="text", alias="requestSource")


class TemporalParseRequest(BaseModel):
    text: str
    reference: Optional[str] = None  # ISO datetime, defaults to now


# Shape of the model's JSON reply (see prompts.SYSTEM_PROMPT).
# Missing or null fields fall back to defaults; anything else malformed fails validation.
class LLMPriority(BaseModel):
    level: Optional[str] = None
    reasoning: Optional[str] = None


class LLMTemporal(BaseModel):
    due_date: Optional[str] = None
    start_date: Optional[str] = None
    recurrence: Optional[str] = None
    reminder: Optional[str] = None


class LLMTask(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: LLMPriority = Field(default_factory=LLMPriority)
    temporal: LLMTemporal = Field(default_factory=LLMTemporal)
    tags: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, value: Any) -> Any:
        # "priority": "High" is accepted as the level alone
        if isinstance(value, str):
            return {"level": value}
        return {} if value is None else value

    @field_validator("temporal", mode="before")
    @classmethod
    def coerce_temporal(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("tags", "dependencies", mode="before")
    @classmethod
    def null_lists(cls, value: Any) -> Any:
        return [] if value is None else value


class LLMAnalysis(BaseModel):
    completeness: Optional[float] = None
    missing_info: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)

    @field_validator("missing_info", "suggestions", mode="before")
    @classmethod
    def null_lists(cls, value: Any) -> Any:
        return [] if value is None else value


class LLMReply(BaseModel):
    task: LLMTask = Field(default_factory=LLMTask)
    analysis: Optional[LLMAnalysis] = None
    clarifying_questions: list[str] = Field(default_factory=list)

    @field_validator("task", mode="before")
    @classmethod
    def coerce_task(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("clarifying_questions", mode="before")
    @classmethod
    def null_lists(cls, value: Any) -> Any:
        return [] if value is None else value


class Notification(BaseModel):
    id: int
    type: str
    message: Optional[str] = None
    task_id: Optional[str] = None
    timestamp: str
    read: bool = False
    priority: str = "normal"
