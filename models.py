"""Quiz domain types shared by the AI service, the quiz session and the web layer.

Records serialise to camelCase dictionaries: the browser and the LLM
response schemas both speak that format.
"""
from dataclasses import dataclass, field
from enum import Enum


class Difficulty(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class TaskType(str, Enum):
    FILL_IN_BLANK = "Fill in the Blank"
    BUG_FIX = "Bug Fix"
    PREDICT_OUTPUT = "Predict Output"


class Topic(str, Enum):
    VARIABLES = "Variables & Data Types"
    LOOPS = "Loops (for, while)"
    ARRAYS = "Arrays"
    OOP = "OOP Concepts (Classes, Objects)"
    METHODS = "Methods & Recursion"
    EXCEPTIONS = "Exception Handling"
    STRINGS = "String Manipulation"
    FILE_IO = "File I/O"
    COLLECTIONS = "Java Collections Framework"


class Language(str, Enum):
    ENGLISH = "English"
    BULGARIAN = "Bulgarian"


def _parse_enum(enum_cls, value, field_name):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {field_name} '{value}'. Expected one of: {allowed}")


def _clamp(value, low, high):
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        number = low
    return max(low, min(high, number))


@dataclass
class QuizConfig:
    difficulty: Difficulty = Difficulty.BEGINNER
    topic: Topic = Topic.VARIABLES
    task_type: TaskType = TaskType.FILL_IN_BLANK
    language: Language = Language.ENGLISH

    @classmethod
    def from_dict(cls, data, base=None):
        """Build a config from wire data; missing keys fall back to ``base`` (or defaults)."""
        base = base or cls()
        return cls(
            difficulty=_parse_enum(Difficulty, data.get("difficulty", base.difficulty), "difficulty"),
            topic=_parse_enum(Topic, data.get("topic", base.topic), "topic"),
            task_type=_parse_enum(TaskType, data.get("taskType", base.task_type), "taskType"),
            language=_parse_enum(Language, data.get("language", base.language), "language"),
        )

    def to_dict(self) -> dict:
        return {
            "difficulty": self.difficulty.value,
            "topic": self.topic.value,
            "taskType": self.task_type.value,
            "language": self.language.value,
        }


@dataclass
class GeneratedQuestion:
    title: str
    instructions: str
    code_snippet: str
    solution: str
    explanation: str
    # Snapshot restored by a reset
    initial_code: str = field(default="")

    def __post_init__(self):
        if not self.initial_code:
            self.initial_code = self.code_snippet

    @classmethod
    def from_dict(cls, data):
        return cls(
            title=str(data.get("title", "")),
            instructions=str(data.get("instructions", "")),
            code_snippet=str(data.get("codeSnippet", "")),
            solution=str(data.get("solution", "")),
            explanation=str(data.get("explanation", "")),
            initial_code=str(data.get("initialCode", "")),
        )

    def to_dict(self, include_solution=True) -> dict:
        data = {
            "title": self.title,
            "instructions": self.instructions,
            "codeSnippet": self.code_snippet,
            "initialCode": self.initial_code,
            "explanation": self.explanation,
        }
        if include_solution:
            data["solution"] = self.solution
        return data


@dataclass
class SimulationResult:
    output: str
    is_correct: bool
    feedback: str

    @classmethod
    def from_dict(cls, data):
        is_correct = data.get("isCorrect", False)
        if isinstance(is_correct, str):
            is_correct = is_correct.strip().lower() == "true"
        return cls(
            output=str(data.get("output") or ""),
            is_correct=bool(is_correct),
            feedback=str(data.get("feedback") or ""),
        )

    def to_dict(self) -> dict:
        return {"output": self.output, "isCorrect": self.is_correct, "feedback": self.feedback}


@dataclass
class ExamResult:
    grade: int  # 2 (Poor) .. 6 (Excellent)
    label: str
    feedback: str
    style_score: int  # 0-100
    correctness_score: int  # 0-100

    @classmethod
    def from_dict(cls, data):
        return cls(
            grade=_clamp(data.get("grade", 2), 2, 6),
            label=str(data.get("label") or ""),
            feedback=str(data.get("feedback") or ""),
            style_score=_clamp(data.get("styleScore", 0), 0, 100),
            correctness_score=_clamp(data.get("correctnessScore", 0), 0, 100),
        )

    def to_dict(self) -> dict:
        return {
            "grade": self.grade,
            "label": self.label,
            "feedback": self.feedback,
            "styleScore": self.style_score,
            "correctnessScore": self.correctness_score,
        }
