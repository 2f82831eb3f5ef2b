"""AI grading of a single free-text answer against the six-part rubric."""
import logging
from typing import Any, Optional, Protocol

from openai import APIConnectionError, APITimeoutError, OpenAI, OpenAIError, RateLimitError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from interview_tutor.config import Settings
from interview_tutor.errors import ConfigurationError, GradingServiceError
from interview_tutor.llm_json import require_object
from interview_tutor.models import RUBRIC, Evaluation, RubricDimensions

logger = logging.getLogger(__name__)

RUBRIC_TEXT = """
# Rubric Dimensions (0-5 scale per dimension)

1. Conceptual Knowledge (weight 25%)
   0: missing or incorrect. 3: correct explanation. 5: deep understanding, relationships between concepts.
2. Accuracy & Correctness (weight 25%)
   0: major errors. 3: minor inaccuracies. 5: fully correct, standards-aligned.
3. Depth & Reasoning (weight 15%)
   0: pure definitions. 3: basic reasoning. 5: explains why, tradeoffs, implications.
4. Practical Application (weight 20%)
   0: theoretical only. 3: basic use cases. 5: real-world examples.
5. Edge Cases & Pitfalls (weight 10%)
   0: none mentioned. 3: mentions common pitfalls. 5: explains how to avoid them.
6. Clarity & Precision (weight 5%)
   0: confusing. 3: understandable. 5: precise, professional.

# Final Score (0-100)
((Conceptual * 0.25) + (Accuracy * 0.25) + (Reasoning * 0.15) + (Practical * 0.20)
 + (EdgeCases * 0.10) + (Clarity * 0.05)) * 20
""".strip()

RESPONSE_SHAPE = """{
  "score": number,
  "grade": "A" | "B" | "C" | "D" | "F",
  "dimensions": {
    "conceptualKnowledge": number,
    "accuracy": number,
    "depthAndReasoning": number,
    "practicalApplication": number,
    "edgeCases": number,
    "clarity": number
  },
  "feedback": "string",
  "strengths": ["string"],
  "improvements": ["string"],
  "sampleAnswer": "string"
}"""


class GradingService(Protocol):
    def evaluate(
        self,
        question: str,
        user_answer: str,
        reference_answer: str,
        *,
        timeout: Optional[float] = None,
    ) -> Evaluation: ...


def grade_for(score: float) -> str:
    if score >= 90:
        return "A"
    elif score >= 80:
        return "B"
    elif score >= 70:
        return "C"
    elif score >= 60:
        return "D"
    return "F"


def build_messages(question: str, reference_answer: str, user_answer: str) -> list[dict[str, str]]:
    system = (
        "You are an expert technical interviewer. Evaluate the candidate answer "
        "against the reference answer using the rubric. Reply with JSON only."
    )
    user = f"""**Question:** {question}
**Reference Answer:** {reference_answer}
**Candidate Answer:** {user_answer}

**Rubric:**
{RUBRIC_TEXT}

**Instructions:**
1. Score each dimension from 0 to 5 using the anchors.
2. Calculate the final weighted score (0-100).
3. Assign a letter grade (A, B, C, D, F).
4. Give constructive feedback, strengths, improvements, and a short model answer.

Return valid JSON matching this structure:
{RESPONSE_SHAPE}"""
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def _number(value: Any, name: str, low: float, high: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise GradingServiceError(f"Grader returned a non-numeric {name}: {value!r}", kind="malformed")
    return max(low, min(high, value))


def _to_str_list(x: Any) -> list[str]:
    """Convert None, str, or list[str] to list[str], dropping blanks."""
    if isinstance(x, str):
        x = [x]
    if not isinstance(x, list):
        return []
    return [item.strip() for item in x if isinstance(item, str) and item.strip()]


def parse_evaluation(text: str) -> Evaluation:
    """Validate a grader reply and turn it into an Evaluation."""
    obj = require_object(text)
    if obj.get("score") is None:
        raise GradingServiceError("Grader reply has no score", kind="malformed")
    score = _number(obj["score"], "score", 0, 100)

    raw_dims = obj.get("dimensions") or {}
    if not isinstance(raw_dims, dict):
        raise GradingServiceError("Grader dimensions must be an object", kind="malformed")
    dims = RubricDimensions(**{
        attr: _number(raw_dims.get(key, 0), key, 0, 5) for attr, key, _ in RUBRIC
    })

    grade = obj.get("grade")
    feedback = obj.get("feedback")
    sample = obj.get("sampleAnswer")
    return Evaluation(
        score=score,
        grade=grade.strip() if isinstance(grade, str) and grade.strip() else grade_for(score),
        dimensions=dims,
        feedback=feedback.strip() if isinstance(feedback, str) else "",
        strengths=_to_str_list(obj.get("strengths")),
        improvements=_to_str_list(obj.get("improvements")),
        sample_answer=sample.strip() if isinstance(sample, str) and sample.strip() else None,
    )


def redact(text: str, secret: Optional[str]) -> str:
    if secret:
        text = text.replace(secret, "***")
    return text


class OpenAIGrader:
    """GradingService backed by the OpenAI chat completions API."""

    attempts = 3
    retry_wait = wait_exponential(multiplier=1, min=1, max=8)

    def __init__(self, settings: Settings, client=None) -> None:
        self.settings = settings
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self.settings.openai_api_key:
                raise ConfigurationError(
                    "OPENAI_API_KEY is not set; grading needs an OpenAI API key",
                    kind="missing_credentials",
                )
            if not self.settings.grader_model:
                raise ConfigurationError("GRADER_MODEL is not set", kind="missing_model")
            # Retries are handled here so timeouts stay under our control
            self._client = OpenAI(api_key=self.settings.openai_api_key, max_retries=0)
        return self._client

    def _complete(self, messages: list[dict[str, str]], timeout: Optional[float]) -> str:
        retrying = Retrying(
            # Timeouts are not retried: the caller's timeout bounds the whole call
            retry=(
                retry_if_exception_type((RateLimitError, APIConnectionError))
                & retry_if_not_exception_type(APITimeoutError)
            ),
            stop=stop_after_attempt(self.attempts),
            wait=self.retry_wait,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                resp = self.client.chat.completions.create(
                    model=self.settings.grader_model,
                    messages=messages,
                    temperature=self.settings.grader_temperature,
                    response_format={"type": "json_object"},
                    timeout=timeout,
                )
        return resp.choices[0].message.content or ""

    def evaluate(
        self,
        question: str,
        user_answer: str,
        reference_answer: str,
        *,
        timeout: Optional[float] = None,
    ) -> Evaluation:
        if timeout is None:
            timeout = self.settings.grader_timeout
        messages = build_messages(question, reference_answer, user_answer)
        try:
            text = self._complete(messages, timeout)
        except APITimeoutError:
            raise GradingServiceError(f"Grader timed out after {timeout:g}s", kind="timeout")
        except OpenAIError as e:
            message = redact(str(e), self.settings.openai_api_key)
            logger.warning("Grading request failed: %s", message)
            raise GradingServiceError(f"Grading request failed: {message}", kind="service_error")
        return parse_evaluation(text)
