"""Quiz lifecycle for a single learner: setup, question, run/reset, grade, review."""
import logging
import re
import threading
import time

import ai_service
from models import Language, QuizConfig

logger = logging.getLogger(__name__)

MAIN_FILE = "Main.java"

PHASE_SETUP = "setup"
PHASE_QUESTION = "question"
PHASE_GRADED = "graded"
PHASE_REVIEW = "review"

BLANK_PATTERN = re.compile(re.escape(ai_service.BLANK_PLACEHOLDER))

LABELS = {
    Language.ENGLISH: {
        "appTitle": "JavaMaster AI",
        "subtitle": "Generate custom Java coding challenges",
        "interfaceLanguage": "Interface Language",
        "difficulty": "Difficulty",
        "topic": "Topic",
        "taskType": "Task Type",
        "start": "Start Challenge",
        "generating": "Generating...",
        "terminal": "Terminal & Results",
        "newTask": "New Task",
        "waiting": "Waiting for execution...",
        "passed": "PASSED",
        "failed": "FAILED",
        "stdout": "Stdout",
        "noOutput": "No output",
        "explanation": "Explanation",
        "time": "Time",
        "attempts": "Attempts",
        "style": "Style",
        "reset": "Reset",
        "run": "Run Code",
        "running": "Running...",
        "finish": "Finish Exam",
        "grading": "Grading...",
        "reviewCode": "Review Code",
        "newExam": "New Exam",
        "blankHint": "Fill here",
        "blankHover": "**Action Required**: Replace `____` with the correct code.",
    },
    Language.BULGARIAN: {
        "appTitle": "JavaMaster AI",
        "subtitle": "Генерирайте персонализирани задачи по Java",
        "interfaceLanguage": "Език на интерфейса",
        "difficulty": "Трудност",
        "topic": "Тема",
        "taskType": "Тип задача",
        "start": "Започни",
        "generating": "Генериране...",
        "terminal": "Терминал & Резултати",
        "newTask": "Нова Задача",
        "waiting": "Очаква се изпълнение...",
        "passed": "УСПЕХ",
        "failed": "ГРЕШКА",
        "stdout": "Изход",
        "noOutput": "Няма изход",
        "explanation": "Обяснение",
        "time": "Време",
        "attempts": "Опити",
        "style": "Стил",
        "reset": "Рестарт",
        "run": "Изпълни",
        "running": "Изпълнение...",
        "finish": "Предай",
        "grading": "Оценяване...",
        "reviewCode": "Затвори",
        "newExam": "Нов Тест",
        "blankHint": "Попълни",
        "blankHover": "**Необходимо действие**: Заменете `____` с правилния код.",
    },
}


class QuizStateError(Exception):
    """Raised when an operation is not allowed in the quiz's current phase."""


def labels(language) -> dict:
    if not isinstance(language, Language):
        language = Language(language)
    return LABELS[language]


def format_time(seconds: int) -> str:
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins}:{secs:02d}"


def grade_band(grade: int) -> str:
    if grade >= 5:
        return "high"
    if grade >= 3:
        return "mid"
    return "low"


def find_blanks(code: str) -> list:
    """Locate every placeholder as a 1-based, end-exclusive editor range."""
    ranges = []
    for match in BLANK_PATTERN.finditer(code or ""):
        start = match.start()
        line = code.count("\n", 0, start) + 1
        column = start - (code.rfind("\n", 0, start) + 1) + 1
        ranges.append({
            "startLine": line,
            "startColumn": column,
            "endLine": line,
            "endColumn": column + len(match.group(0)),
        })
    return ranges


class QuizSession:
    """One learner's quiz.

    ``service`` is anything exposing ``generate_question``,
    ``simulate_java_code`` and ``grade_exam`` with the signatures of
    :mod:`ai_service`; ``clock`` returns seconds as a float.
    """

    def __init__(self, service=ai_service, clock=time.monotonic):
        self.service = service
        self.clock = clock
        self.config = QuizConfig()
        self.question = None
        self.user_code = ""
        self.active_tab = MAIN_FILE
        self.simulation_result = None
        self.exam_result = None
        self.result_dismissed = False
        self.attempts = 0
        self.started_at = None
        self.finished_at = None
        self.error = None
        self.busy = None
        self._lock = threading.Lock()

    @property
    def phase(self) -> str:
        if self.question is None:
            return PHASE_SETUP
        if self.exam_result is None:
            return PHASE_QUESTION
        if self.result_dismissed:
            return PHASE_REVIEW
        return PHASE_GRADED

    @property
    def read_only(self) -> bool:
        return self.exam_result is not None

    def elapsed_seconds(self) -> int:
        if self.started_at is None:
            return 0
        end = self.finished_at if self.finished_at is not None else self.clock()
        return int(end - self.started_at)

    def blanks(self) -> list:
        return find_blanks(self.user_code)

    # -- guards ---------------------------------------------------------

    def _check_idle(self):
        # Caller holds self._lock
        if self.busy:
            raise QuizStateError(f"Another operation is in progress ({self.busy})")

    def _begin(self, task):
        with self._lock:
            self._check_idle()
            self.busy = task

    def _end(self):
        with self._lock:
            self.busy = None

    def _require_editable(self, action):
        if self.read_only:
            raise QuizStateError(f"Cannot {action} after the exam has been graded")

    # -- operations -----------------------------------------------------

    def update_config(self, values: dict):
        with self._lock:
            self._check_idle()
            if self.phase != PHASE_SETUP:
                raise QuizStateError("Settings can only be changed before a challenge starts")
            self.config = QuizConfig.from_dict(values, base=self.config)
            return self.config

    def start(self):
        """Generate a new question and start the timer."""
        self._begin("generating")
        self.error = None
        try:
            question = self.service.generate_question(self.config)
        except ai_service.AIServiceError as e:
            self.error = str(e) or "Failed to generate question. Please check API Key."
            logger.error("Question generation failed: %s", self.error)
            raise
        else:
            self.question = question
            self.simulation_result = None
            self.exam_result = None
            self.result_dismissed = False
            self.user_code = question.code_snippet
            self.active_tab = MAIN_FILE
            self.attempts = 0
            self.started_at = self.clock()
            self.finished_at = None
        finally:
            self._end()

        logger.info("Started %s / %s / %s challenge: %s", self.config.difficulty.value,
                    self.config.topic.value, self.config.task_type.value, question.title)
        return question

    def edit(self, code: str):
        with self._lock:
            self._check_idle()
            if self.question is None:
                raise QuizStateError("No active question to edit")
            self._require_editable("edit code")
            self.user_code = code or ""

    def run(self):
        """Simulate the current code. Every run counts as an attempt, even a failed one."""
        self._begin("simulating")
        try:
            if self.question is None:
                return None
            self._require_editable("run code")
            self.simulation_result = None
            self.attempts += 1
            result = self.service.simulate_java_code(self.user_code, self.question, self.config.language.value)
        except ai_service.AIServiceError as e:
            self.error = str(e) or "Failed to simulate code."
            logger.error("Simulation failed: %s", self.error)
            raise
        else:
            self.simulation_result = result
        finally:
            self._end()
        return result

    def reset(self):
        """Restore the starting code; counts as an attempt."""
        with self._lock:
            self._check_idle()
            if self.question is None:
                return
            self._require_editable("reset code")
            self.user_code = self.question.initial_code
            self.simulation_result = None
            self.attempts += 1

    def finish(self):
        """Grade the submission and stop the timer."""
        self._begin("grading")
        try:
            if self.question is None:
                return None
            if self.exam_result is not None:
                raise QuizStateError("The exam has already been graded")
            metrics = {"time_spent_seconds": self.elapsed_seconds(), "attempts": self.attempts}
            result = self.service.grade_exam(self.user_code, self.question, metrics, self.config.language.value)
        except ai_service.AIServiceError as e:
            self.error = str(e) or "Failed to grade exam."
            logger.error("Grading failed: %s", self.error)
            raise
        else:
            self.exam_result = result
            self.result_dismissed = False
            self.finished_at = self.started_at + metrics["time_spent_seconds"]
        finally:
            self._end()
        logger.info("Exam graded %s (%s) after %ss and %s attempts", result.grade, result.label,
                    metrics["time_spent_seconds"], self.attempts)
        return result

    def dismiss_result(self):
        """Close the result dialog; the code stays read-only for review."""
        if self.exam_result is None:
            raise QuizStateError("There is no exam result to dismiss")
        self.result_dismissed = True

    def back_to_setup(self):
        with self._lock:
            self._check_idle()
            self.question = None
            self.user_code = ""
            self.simulation_result = None
            self.exam_result = None
            self.result_dismissed = False
            self.error = None
            self.attempts = 0
            self.started_at = None
            self.finished_at = None

    def to_dict(self) -> dict:
        elapsed = self.elapsed_seconds()
        exam = None
        if self.exam_result is not None:
            exam = self.exam_result.to_dict()
            exam["band"] = grade_band(self.exam_result.grade)
        return {
            "phase": self.phase,
            "config": self.config.to_dict(),
            "question": self.question.to_dict(include_solution=False) if self.question else None,
            "files": [{"name": MAIN_FILE, "language": "java", "content": self.user_code}],
            "activeTab": self.active_tab,
            "userCode": self.user_code,
            "blanks": self.blanks(),
            "readOnly": self.read_only,
            "simulationResult": self.simulation_result.to_dict() if self.simulation_result else None,
            "examResult": exam,
            "showResult": exam is not None and not self.result_dismissed,
            "attempts": self.attempts,
            "elapsedSeconds": elapsed,
            "elapsed": format_time(elapsed),
            "timerRunning": self.question is not None and self.exam_result is None,
            "busy": self.busy,
            "error": self.error,
            "labels": labels(self.config.language),
        }
