"""LLM-backed question generation, execution simulation and exam grading.

Nothing here compiles or runs Java. Each operation builds a prompt, asks the
model for a JSON object matching a strict schema, and turns the reply into
one of the records in ``models``.
"""
import json
import logging
import re

import openai

from config import Config
from models import ExamResult, GeneratedQuestion, SimulationResult, TaskType

logger = logging.getLogger(__name__)

BLANK_PLACEHOLDER = "____"


class AIServiceError(Exception):
    """Base error for anything that goes wrong talking to the model."""


class AIConfigurationError(AIServiceError):
    pass


class AIResponseError(AIServiceError):
    pass


# System persona shared by all three calls
SENIOR_JAVA_DEV_PROMPT = """
You are an expert Senior Java Developer and Code Reviewer specialized in Clean Code and Code Style standards (Google Java Style Guide / Oracle Conventions).

Your goal is to reformat the user's Java code to maximize readability, focusing specifically on **layout, indentation, and spacing**.

**STRICT FORMATTING RULES:**
1.  **Indentation:**
    - Use exactly 4 SPACES for each level of indentation. Do NOT use tabs.
    - Ensure nested blocks (if, for, while) are strictly indented relative to their parent.
2.  **Brace Style (K&R / Egyptian):**
    - Opening braces `{` must be on the same line as the declaration.
    - Closing braces `}` must be on their own line, aligned with the start of the block statement.
3.  **Line Wrapping & Length:**
    - Hard limit: 120 characters per line.
    - **Method Chaining (Streams/Builders):** Put each method call on a new line, starting with the dot `.`. Align the dots vertically.
    - **Long Arguments:** If arguments exceed line length, break them into new lines, aligned with the opening parenthesis `(`.
    - **Operators:** Break lines *before* binary operators (e.g., `+`, `&&`, `||`), not after.
4.  **Whitespace (Breathing Room):**
    - Add a single space around all operators (`=`, `+`, `==`, `->`).
    - Add a single space after keywords like `if`, `for`, `while`, `catch` before the opening parenthesis.
    - Add a single space after commas in lists.
5.  **Vertical Spacing:**
    - Insert exactly one blank line between methods.
    - Insert one blank line inside methods to separate logical blocks (e.g., between variable declarations and logic).

**FILL-IN-THE-BLANK SYSTEM INSTRUCTION:**
You are an intelligent coding assistant helping a user complete a Java "fill-in-the-blanks" exercise.

The user provided code snippet containing placeholders. These placeholders are marked in two ways:
1. Text surrounded by underscores (e.g., `_int___`, `_a_`, `______`).
2. Visual boxes indicating missing values.

**YOUR PRIMARY GOAL:**
When evaluating, generating, or correcting code involving blanks:
When the user provides an input value for a blank, you must replace the **ENTIRE** placeholder with that value.

**STRICT CONSTRAINTS FOR REPLACEMENT:**
1.  **REMOVE ALL UNDERSCORES:** You must delete all leading and trailing underscores belonging to the placeholder.
2.  **CLEAN OUTPUT:** The final result must contain ONLY the user's typed value in that position, with correct normal spacing around it. No remnant underscores should remain.

**EXAMPLES:**
* **Input Code:** `_int___ age = 25;` -> **User Types:** `int` -> **CORRECT Output:** `int age = 25;`
* **Input Code:** `______ temperature = 36.6;` -> **User Types:** `double` -> **CORRECT Output:** `double temperature = 36.6;`
"""

QUESTION_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "A short title for the problem"},
        "instructions": {"type": "string", "description": "Clear instructions for the student on what to do"},
        "codeSnippet": {
            "type": "string",
            "description": (
                "The Java code following the formatting rules. For 'Fill in the Blank', use '____' "
                "(4 underscores) as placeholders. For 'Bug Fix', include logic or syntax errors."
            ),
        },
        "solution": {"type": "string", "description": "The fully correct, working Java code following the formatting rules."},
        "explanation": {"type": "string", "description": "A brief explanation of the concept being tested."},
    },
    "required": ["title", "instructions", "codeSnippet", "solution", "explanation"],
    "additionalProperties": False,
}

SIMULATION_SCHEMA = {
    "type": "object",
    "properties": {
        "output": {
            "type": "string",
            "description": "The simulated console output of the code. If there is a compilation error, put the error message here.",
        },
        "isCorrect": {"type": "boolean", "description": "Whether the code solves the problem as requested."},
        "feedback": {
            "type": "string",
            "description": "Constructive feedback for the student, including notes on code style/formatting if applicable.",
        },
    },
    "required": ["output", "isCorrect", "feedback"],
    "additionalProperties": False,
}

EXAM_SCHEMA = {
    "type": "object",
    "properties": {
        "grade": {"type": "integer", "description": "The final grade on a scale of 2 to 6."},
        "label": {"type": "string", "description": "Label like 'Excellent', 'Good', 'Poor', etc."},
        "feedback": {"type": "string", "description": "Detailed justification for the grade."},
        "styleScore": {"type": "integer", "description": "0-100 score for indentation and formatting."},
        "correctnessScore": {"type": "integer", "description": "0-100 score for functionality."},
    },
    "required": ["grade", "label", "feedback", "styleScore", "correctnessScore"],
    "additionalProperties": False,
}


def clean_code(code: str) -> str:
    """Strip comments and excess blank lines from generated Java code."""
    code = re.sub(r"//.*$", "", code, flags=re.MULTILINE)
    code = re.sub(r"/\*[\s\S]*?\*/", "", code)
    # Whitespace-only lines become empty lines, then runs of them collapse
    code = re.sub(r"^[ \t]+$", "", code, flags=re.MULTILINE)
    code = re.sub(r"\n{3,}", "\n\n", code)
    return code.strip()


def extract_json(text: str) -> dict:
    """Parse a JSON object out of a model reply, tolerating code fences and prose."""
    if not text or not text.strip():
        raise AIResponseError("No response from the model")

    json_content = text.strip()

    # Check if content is wrapped in markdown code blocks
    if "```" in json_content:
        match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", json_content, re.DOTALL)
        if match:
            json_content = match.group(1)

    # Try to find JSON object if there's extra text
    if not json_content.startswith("{"):
        match = re.search(r"\{.*\}", json_content, re.DOTALL)
        if match:
            json_content = match.group(0)

    try:
        parsed = json.loads(json_content)
    except json.JSONDecodeError as e:
        logger.error("Model returned invalid JSON: %s; content: %s", e, json_content[:500])
        raise AIResponseError(f"AI generated invalid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise AIResponseError("AI response is not a JSON object")
    return parsed


def _get_api_key() -> str:
    api_key = Config.OPENAI_API_KEY
    if not api_key:
        raise AIConfigurationError("API Key not found in environment")
    return api_key


def _ai_generate_json(prompt: str, schema_name: str, schema: dict, temperature: float) -> dict:
    """Send one prompt under the Java developer persona and return the parsed JSON reply."""
    openai.api_key = _get_api_key()

    logger.info("Calling %s for %s", Config.OPENAI_MODEL, schema_name)
    try:
        response = openai.chat.completions.create(
            model=Config.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SENIOR_JAVA_DEV_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": True},
            },
            temperature=temperature,
            timeout=Config.OPENAI_TIMEOUT,
        )
    except openai.OpenAIError as e:
        logger.error("OpenAI API error during %s: %s", schema_name, e)
        raise AIServiceError(str(e)) from e

    if not response.choices:
        raise AIResponseError("No response from the model")
    message = response.choices[0].message
    if getattr(message, "refusal", None):
        raise AIResponseError(f"Model refused the request: {message.refusal}")
    return extract_json(message.content or "")


def generate_question(config) -> GeneratedQuestion:
    """Ask the model for a new exercise matching ``config`` (a QuizConfig)."""
    prompt = f"""
    Create a Java programming task.
    Difficulty: {config.difficulty.value}
    Topic: {config.topic.value}
    Type: {config.task_type.value}
    Language: {config.language.value} (The instructions and title must be in this language).

    CRITICAL CODE GENERATION RULES:
    1. The 'codeSnippet' must be PURE Java code.
    2. STRICTLY FORBIDDEN: Do NOT include ANY comments (// or /* */). No instructions inside the code.
    3. The code must be cleanly formatted according to the System Instructions (4 spaces, K&R braces).
    4. If Type is '{TaskType.FILL_IN_BLANK.value}', use exactly '{BLANK_PLACEHOLDER}' (4 underscores).
    5. If Type is '{TaskType.BUG_FIX.value}', provide code with subtle errors but NO comments pointing them out.

    Ensure the code is self-contained (e.g., inside a Main class main method).
    """

    data = _ai_generate_json(prompt, "java_question", QUESTION_SCHEMA, Config.GENERATION_TEMPERATURE)
    question = GeneratedQuestion.from_dict(data)

    # Models still slip comments in despite the instructions
    question.code_snippet = clean_code(question.code_snippet)
    question.initial_code = question.code_snippet
    if not question.code_snippet:
        raise AIResponseError("Generated question has no code")
    return question


def simulate_java_code(user_code: str, question: GeneratedQuestion, language: str) -> SimulationResult:
    """Have the model play compiler and tutor for one run of the learner's code."""
    prompt = f"""
    Act as a Java Compiler and Tutor.

    Task Instructions: {question.instructions}
    Expected Solution Pattern: {question.solution}

    Student's Code:
    ```java
    {user_code}
    ```

    1. Simulate the execution of the Student's Code.
    2. Determine if it successfully accomplishes the task.
    3. Provide the output (stdout) or compiler errors.
    4. Provide feedback in {language}.
       - Check if the code runs correctly.
       - Also briefly check if the student maintained the Coding Style (indentation, spacing) defined in your System Instructions.
    """

    data = _ai_generate_json(prompt, "java_simulation", SIMULATION_SCHEMA, Config.SIMULATION_TEMPERATURE)
    return SimulationResult.from_dict(data)


def grade_exam(user_code: str, question: GeneratedQuestion, metrics: dict, language: str) -> ExamResult:
    """Grade the final submission on the 2-6 scale.

    ``metrics`` carries ``time_spent_seconds`` and ``attempts``; both feed the
    efficiency part of the grade.
    """
    prompt = f"""
    Act as a Strict Computer Science Teacher grading a student exam.

    GRADING SCALE (Bulgarian System):
    6 = Excellent (Perfect correct code, perfect style, efficiency)
    5 = Very Good (Correct code, minor style or efficiency issues)
    4 = Good (Correct logic but messy, or took too many attempts)
    3 = Fair (Partial solution or major errors)
    2 = Poor (Does not run, logic failed completely)

    Student Performance Data:
    - Task: {question.instructions}
    - Correct Solution: {question.solution}
    - Student Code: ```java {user_code} ```
    - Time Taken: {metrics["time_spent_seconds"]} seconds
    - Attempts (Runs): {metrics["attempts"]}

    Evaluation Criteria:
    1. **Functionality (Highest Weight)**: Does it solve the problem?
    2. **Formatting & Style**: Are indents correct (4 spaces)? Are brackets correct? Is it readable?
    3. **Efficiency**: Did they take too long (>120s for simple tasks is slow)? Did they spam the "Run" button (>5 attempts is bad)?

    Respond in {language}.
    Calculate 'grade' (integer 2-6).
    Calculate 'styleScore' (0-100).
    Calculate 'correctnessScore' (0-100).
    """

    data = _ai_generate_json(prompt, "java_exam_grade", EXAM_SCHEMA, Config.GRADING_TEMPERATURE)
    return ExamResult.from_dict(data)
