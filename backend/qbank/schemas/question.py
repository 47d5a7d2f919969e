"""
Question schemas for the nursing question bank.

Defines the exam categories, difficulty levels and the pydantic model every
generated question must pass before it is saved.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class ExamCategory(str, Enum):
    NCLEX = "NCLEX"
    TEAS = "TEAS"
    HESI = "HESI"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


OPTION_LETTERS = ("A", "B", "C", "D")


class GeneratedQuestion(BaseModel):
    """
    A validated multiple-choice question ready for insertion.

    The model may name the correct answer either by its full text or by its
    letter (A-D); after validation ``correct_answer`` always holds the
    option text.
    """
    category: ExamCategory
    question: str = Field(..., min_length=10)
    options: List[str] = Field(..., min_length=4, max_length=4)
    correct_answer: str = Field(..., min_length=1)
    explanation: str = Field(..., min_length=1)
    difficulty: Difficulty = Difficulty.MEDIUM
    subject: Optional[str] = None
    topic: Optional[str] = None

    @field_validator("question", "explanation", "correct_answer")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("options")
    @classmethod
    def validate_options(cls, v: List[str]) -> List[str]:
        options = [str(o).strip() for o in v]
        if any(not o for o in options):
            raise ValueError("options must not be blank")
        if len({o.lower() for o in options}) != len(options):
            raise ValueError("Duplicate options detected")
        return options

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode="after")
    def match_correct_answer(self) -> "GeneratedQuestion":
        answer = self.correct_answer
        for option in self.options:
            if option.lower() == answer.lower():
                self.correct_answer = option
                return self

        letter = answer.rstrip(".)").upper()
        if letter in OPTION_LETTERS:
            self.correct_answer = self.options[OPTION_LETTERS.index(letter)]
            return self

        raise ValueError(f"Correct answer does not match any option: {answer!r}")

    def to_row(self) -> dict:
        """Column values for the questions table."""
        return {
            "category": self.category.value,
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "difficulty": self.difficulty.value,
            "subject": self.subject,
            "topic": self.topic,
            "source": "ai_generated",
        }
