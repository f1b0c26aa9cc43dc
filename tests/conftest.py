import pytest

import app as app_module
from models import ExamResult, GeneratedQuestion, SimulationResult
from quiz import QuizSession

SNIPPET = """public class Main {
    public static void main(String[] args) {
        ____ age = 25;
        System.out.println(____);
    }
}"""

SOLUTION = SNIPPET.replace("____ age", "int age").replace("(____)", "(age)")


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeService:
    """Stands in for ai_service; records every call."""

    def __init__(self):
        self.calls = []
        self.fail = {}
        self.simulation = SimulationResult(output="25", is_correct=True, feedback="Well done.")
        self.exam = ExamResult(grade=6, label="Excellent", feedback="Clean and correct.",
                               style_score=95, correctness_score=100)

    def _maybe_fail(self, name):
        if name in self.fail:
            raise self.fail[name]

    def generate_question(self, config):
        self.calls.append(("generate_question", config))
        self._maybe_fail("generate_question")
        return GeneratedQuestion(
            title="Declare an age",
            instructions="Fill in the type and print the variable.",
            code_snippet=SNIPPET,
            solution=SOLUTION,
            explanation="int stores whole numbers.",
        )

    def simulate_java_code(self, user_code, question, language):
        self.calls.append(("simulate_java_code", user_code, language))
        self._maybe_fail("simulate_java_code")
        return self.simulation

    def grade_exam(self, user_code, question, metrics, language):
        self.calls.append(("grade_exam", user_code, dict(metrics), language))
        self._maybe_fail("grade_exam")
        return self.exam


@pytest.fixture
def fake_service():
    return FakeService()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def quiz(fake_service, clock):
    return QuizSession(service=fake_service, clock=clock)


@pytest.fixture
def client(fake_service, monkeypatch):
    monkeypatch.setattr(app_module, "store", app_module.SessionStore(service=fake_service))
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as test_client:
        yield test_client
