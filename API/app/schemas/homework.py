from enum import Enum

from pydantic import AliasChoices, AliasPath, BaseModel, ConfigDict, Field, field_validator


class Subject(str, Enum):
    MATH = "Math"
    PHYSICS = "Physics"
    CHEMISTRY = "Chemistry"
    DIARY = "Diary"


STUDY_SUBJECTS = (Subject.MATH, Subject.PHYSICS, Subject.CHEMISTRY)


class SolveRequest(BaseModel):
    """Body accepted by the gateway; `voiceText` and `prompt` are interchangeable."""

    model_config = ConfigDict(populate_by_name=True)

    subject: Subject
    image: str | None = Field(default=None, description="Data URI or bare base64 image")
    voice_text: str | None = Field(default=None, alias="voiceText")
    prompt: str | None = None

    @field_validator("subject")
    @classmethod
    def _study_subject_only(cls, value: Subject) -> Subject:
        if value not in STUDY_SUBJECTS:
            raise ValueError("subject must be one of Math, Physics, Chemistry")
        return value

    @property
    def user_text(self) -> str:
        return (self.voice_text or self.prompt or "").strip()


def _as_text(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class QuizDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(validation_alias=AliasChoices("question", "q"))
    options: list[str] = Field(min_length=4, max_length=4, validation_alias=AliasChoices("options", "opt"))
    correct_index: int = Field(
        ge=0,
        le=3,
        validation_alias=AliasChoices("correctIndex", "correct_index", "correct"),
        serialization_alias="correctIndex",
    )
    explanation: str = Field(default="", validation_alias=AliasChoices("explanation", "reason"))

    @field_validator("options", mode="before")
    @classmethod
    def _options_as_text(cls, value):
        if isinstance(value, list):
            return [_as_text(item) for item in value]
        return value


class AIResultDocument(BaseModel):
    """Answer, worked steps and a practice quiz.

    Accepts both the provider's nested shape
    (``{"solution": {"ans", "steps"}, "quiz": {"q", "opt", "correct", "reason"}}``)
    and the flat shape it serializes to.
    """

    model_config = ConfigDict(populate_by_name=True)

    final_answer: str = Field(
        validation_alias=AliasChoices("finalAnswer", "final_answer", AliasPath("solution", "ans")),
        serialization_alias="finalAnswer",
    )
    steps: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("steps", AliasPath("solution", "steps")),
    )
    quiz: QuizDocument

    @field_validator("final_answer", mode="before")
    @classmethod
    def _answer_as_text(cls, value):
        return _as_text(value)

    @field_validator("steps", mode="before")
    @classmethod
    def _steps_default(cls, value):
        if value is None:
            return []
        if isinstance(value, list):
            return [_as_text(item) for item in value]
        return value
