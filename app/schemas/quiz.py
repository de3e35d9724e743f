from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_QUIZ_TYPES = ("mcq", "fill", "truefalse", "flashcard")


class QuizGenerateRequest(BaseModel):
    """Request to generate a quiz from note text. Required fields are checked by the route."""
    notes: Optional[str] = None
    quiz_type: Optional[str] = Field(None, alias="quizType")
    difficulty: Optional[str] = None
    subject: Optional[str] = None
    num_questions: int = Field(5, alias="numQuestions", ge=1, le=50)

    class Config:
        populate_by_name = True


class MultipleChoiceQuestion(BaseModel):
    question: str = Field(min_length=1)
    options: list[str] = Field(min_length=2)
    correct: str = Field(min_length=1)
    explanation: str = Field(min_length=1)

    @model_validator(mode="after")
    def correct_is_an_option(self):
        if self.correct not in self.options:
            raise ValueError("correct must be the exact text of one of the options")
        return self


class FillInQuestion(BaseModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    explanation: str = Field(min_length=1)


class TrueFalseQuestion(BaseModel):
    statement: str = Field(min_length=1)
    is_true: bool = Field(alias="isTrue")
    explanation: str = Field(min_length=1)

    class Config:
        populate_by_name = True

    @field_validator("is_true", mode="before")
    @classmethod
    def require_bool(cls, v):
        if not isinstance(v, bool):
            raise ValueError("isTrue must be a boolean")
        return v


class Flashcard(BaseModel):
    front: str = Field(min_length=1)
    back: str = Field(min_length=1)
    hint: Optional[str] = None


QUESTION_MODELS: dict[str, type[BaseModel]] = {
    "mcq": MultipleChoiceQuestion,
    "fill": FillInQuestion,
    "truefalse": TrueFalseQuestion,
    "flashcard": Flashcard,
}


class QuizResponse(BaseModel):
    success: bool = True
    questions: list[dict[str, Any]]
    type: str
    difficulty: str
    subject: str


class MoodleExportRequest(BaseModel):
    questions: list[dict[str, Any]] = []
    type: str = "mcq"
    title: Optional[str] = None
