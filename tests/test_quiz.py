import pytest

import ai_service
from models import Language, TaskType
from quiz import (
    PHASE_GRADED,
    PHASE_QUESTION,
    PHASE_REVIEW,
    PHASE_SETUP,
    QuizStateError,
    find_blanks,
    format_time,
    grade_band,
    labels,
)

from .conftest import SNIPPET


def test_format_time():
    assert format_time(0) == "0:00"
    assert format_time(9) == "0:09"
    assert format_time(75) == "1:15"
    assert format_time(600) == "10:00"


@pytest.mark.parametrize("grade,band", [(6, "high"), (5, "high"), (4, "mid"), (3, "mid"), (2, "low")])
def test_grade_band(grade, band):
    assert grade_band(grade) == band


def test_labels_are_localized():
    assert labels(Language.ENGLISH)["reset"] == "Reset"
    assert labels("Bulgarian")["reset"] == "Рестарт"
    assert set(labels("English")) == set(labels("Bulgarian"))


def test_find_blanks_positions():
    code = "int ____ = 1;\nString s = ____;\n________"
    assert find_blanks(code) == [
        {"startLine": 1, "startColumn": 5, "endLine": 1, "endColumn": 9},
        {"startLine": 2, "startColumn": 12, "endLine": 2, "endColumn": 16},
        {"startLine": 3, "startColumn": 1, "endLine": 3, "endColumn": 5},
        {"startLine": 3, "startColumn": 5, "endLine": 3, "endColumn": 9},
    ]
    assert find_blanks("") == []


def test_new_session_is_in_setup(quiz):
    assert quiz.phase == PHASE_SETUP
    view = quiz.to_dict()
    assert view["question"] is None
    assert view["attempts"] == 0
    assert view["elapsed"] == "0:00"
    assert view["timerRunning"] is False


def test_update_config_only_in_setup(quiz):
    quiz.update_config({"taskType": "Bug Fix", "language": "Bulgarian"})
    assert quiz.config.task_type is TaskType.BUG_FIX
    quiz.start()
    with pytest.raises(QuizStateError):
        quiz.update_config({"difficulty": "Advanced"})


def test_start_loads_question_and_starts_timer(quiz, fake_service, clock):
    quiz.start()

    assert quiz.phase == PHASE_QUESTION
    assert quiz.user_code == SNIPPET
    assert quiz.active_tab == "Main.java"
    assert quiz.attempts == 0
    assert fake_service.calls[0] == ("generate_question", quiz.config)
    assert len(quiz.blanks()) == 2

    clock.advance(42.7)
    assert quiz.elapsed_seconds() == 42
    assert quiz.to_dict()["timerRunning"] is True


def test_start_failure_keeps_setup_and_records_error(quiz, fake_service):
    fake_service.fail["generate_question"] = ai_service.AIConfigurationError("API Key not found in environment")
    with pytest.raises(ai_service.AIServiceError):
        quiz.start()
    assert quiz.phase == PHASE_SETUP
    assert quiz.error == "API Key not found in environment"
    assert quiz.busy is None


def test_start_failure_without_message_uses_default(quiz, fake_service):
    fake_service.fail["generate_question"] = ai_service.AIServiceError()
    with pytest.raises(ai_service.AIServiceError):
        quiz.start()
    assert quiz.error == "Failed to generate question. Please check API Key."


def test_run_counts_attempts_and_stores_result(quiz, fake_service):
    quiz.start()
    quiz.edit(SNIPPET.replace("____", "int", 1))

    result = quiz.run()

    assert result.is_correct
    assert quiz.attempts == 1
    assert quiz.simulation_result is result
    name, code, language = fake_service.calls[-1]
    assert name == "simulate_java_code"
    assert code.count("____") == 1
    assert language == "English"


def test_run_failure_still_counts_attempt(quiz, fake_service):
    quiz.start()
    quiz.run()
    fake_service.fail["simulate_java_code"] = ai_service.AIServiceError("timeout")
    with pytest.raises(ai_service.AIServiceError):
        quiz.run()
    assert quiz.attempts == 2
    assert quiz.simulation_result is None
    assert quiz.error == "timeout"


def test_run_and_reset_without_question_are_noops(quiz, fake_service):
    assert quiz.run() is None
    quiz.reset()
    assert quiz.attempts == 0
    assert fake_service.calls == []


def test_reset_restores_initial_code_and_counts_attempt(quiz):
    quiz.start()
    quiz.run()
    quiz.edit("broken")
    quiz.reset()
    assert quiz.user_code == SNIPPET
    assert quiz.simulation_result is None
    assert quiz.attempts == 2


def test_finish_grades_with_metrics_and_stops_timer(quiz, fake_service, clock):
    quiz.start()
    quiz.run()
    clock.advance(130)

    result = quiz.finish()

    assert result.grade == 6
    assert quiz.phase == PHASE_GRADED
    name, code, metrics, language = fake_service.calls[-1]
    assert name == "grade_exam"
    assert metrics == {"time_spent_seconds": 130, "attempts": 1}

    clock.advance(500)
    assert quiz.elapsed_seconds() == 130
    view = quiz.to_dict()
    assert view["timerRunning"] is False
    assert view["showResult"] is True
    assert view["examResult"]["band"] == "high"


def test_finish_failure_keeps_timer_running(quiz, fake_service, clock):
    quiz.start()
    fake_service.fail["grade_exam"] = ai_service.AIServiceError("")
    with pytest.raises(ai_service.AIServiceError):
        quiz.finish()
    assert quiz.error == "Failed to grade exam."
    assert quiz.phase == PHASE_QUESTION
    clock.advance(10)
    assert quiz.elapsed_seconds() == 10


def test_graded_quiz_is_read_only(quiz):
    quiz.start()
    quiz.finish()
    assert quiz.read_only
    for action in (quiz.run, quiz.reset, quiz.finish, lambda: quiz.edit("x")):
        with pytest.raises(QuizStateError):
            action()


def test_dismiss_result_enters_review(quiz):
    quiz.start()
    with pytest.raises(QuizStateError):
        quiz.dismiss_result()
    quiz.finish()
    quiz.dismiss_result()
    assert quiz.phase == PHASE_REVIEW
    assert quiz.read_only
    assert quiz.to_dict()["showResult"] is False


def test_back_to_setup_clears_everything_but_config(quiz):
    quiz.update_config({"language": "Bulgarian"})
    quiz.start()
    quiz.run()
    quiz.finish()

    quiz.back_to_setup()

    assert quiz.phase == PHASE_SETUP
    assert quiz.user_code == ""
    assert quiz.simulation_result is None
    assert quiz.exam_result is None
    assert quiz.error is None
    assert quiz.config.language is Language.BULGARIAN
    assert quiz.to_dict()["labels"]["newTask"] == "Нова Задача"


def test_busy_session_refuses_overlapping_operations(quiz):
    quiz.start()
    quiz.busy = "simulating"
    with pytest.raises(QuizStateError):
        quiz.run()
    with pytest.raises(QuizStateError):
        quiz.back_to_setup()


def test_busy_session_refuses_edits_and_resets(quiz):
    quiz.start()
    quiz.busy = "grading"
    for operation in (quiz.reset, lambda: quiz.edit("class Main {}"), lambda: quiz.update_config({})):
        with pytest.raises(QuizStateError):
            operation()
    assert quiz.attempts == 0
    assert quiz.user_code == SNIPPET


def test_reset_during_grading_is_refused(quiz, fake_service):
    quiz.start()
    refused = []
    grade = fake_service.grade_exam

    def grade_while_resetting(*args):
        try:
            quiz.reset()
        except QuizStateError:
            refused.append(True)
        return grade(*args)

    fake_service.grade_exam = grade_while_resetting
    quiz.finish()

    assert refused == [True]
    assert quiz.attempts == 0
    assert quiz.phase == PHASE_GRADED
    assert quiz.busy is None


def test_view_hides_solution(quiz):
    quiz.start()
    assert "solution" not in quiz.to_dict()["question"]
