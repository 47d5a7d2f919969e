"""
AI Question Generation Service for the nursing question bank.

Generates NCLEX / TEAS / HESI multiple-choice questions with an external
chat model. This module only talks to the model: it never writes to the
database and never retries. Callers (the subject tracker and the job queue)
own retry and error bookkeeping.

Pipeline:
    build_generation_prompt -> LLM call (bounded by a timeout)
    -> parse_generation_response (fences, json, repair, per-item validation)
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from openai import NotFoundError
from pydantic import ValidationError

from qbank.schemas.question import Difficulty, ExamCategory, GeneratedQuestion
from qbank.utils.json_repair import repair_json, strip_code_fences
from qbank.utils.openai_client import create_openai_client

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when a generation call yields no usable questions."""
    pass


# ============================================================================
# LLM CLIENT
# ============================================================================

SYSTEM_MESSAGE = (
    "You are an expert nursing exam question writer. "
    "You respond with valid JSON only."
)


class OpenAIChatClient:
    """
    Text-in/text-out wrapper around the async OpenAI chat completions API.

    Works with any OpenAI-compatible endpoint (set ``base_url``).
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 temperature: float = 0.7, max_tokens: int = 8192):
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._openai = None

    def _client(self):
        if self._openai is None:
            self._openai = create_openai_client(api_key=self.api_key, base_url=self.base_url)
        return self._openai

    async def complete(self, prompt: str, model: str) -> str:
        response = await self._client().chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def probe(self, model: str) -> None:
        """Cheap one-token call used to check that a model exists."""
        await self._client().chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": "ping"}],
            max_tokens=1,
        )


# ============================================================================
# PROMPT
# ============================================================================

def build_generation_prompt(
    category: str,
    count: int,
    subject: Optional[str] = None,
    difficulty: Optional[str] = None,
    sample_question: Optional[str] = None,
    areas_to_cover: Optional[str] = None,
) -> str:
    """Build the instruction prompt for one batch of questions."""
    level = difficulty or Difficulty.MEDIUM.value

    prompt = f"""You are an expert nursing exam question writer. Generate high-quality, realistic practice questions for {category} exams.

Requirements:
- Each question must have exactly 4 answer options
- Only ONE option should be correct
- Include a detailed explanation for the correct answer
- Questions should test critical thinking, not just memorization
- Use proper medical terminology
- Follow {category} question format standards

Generate {count} {level} difficulty {category} questions{f' on {subject}' if subject else ''}.
"""

    if areas_to_cover:
        prompt += f"""
AREAS TO COVER:
{areas_to_cover}
Distribute questions evenly across these areas.
"""

    if sample_question:
        prompt += f"""
SAMPLE QUESTION (match its style and depth, do not copy it):
{sample_question}
"""

    prompt += """
Return ONLY a valid JSON array of questions with this exact structure (no markdown, no commentary):
[
  {
    "question": "The complete question text",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctAnswer": "The exact text of the correct option",
    "explanation": "Detailed explanation of why this answer is correct",
    "subject": "Subject area",
    "difficulty": "easy|medium|hard"
  }
]"""
    return prompt


# ============================================================================
# PARSING
# ============================================================================

@dataclass
class DroppedItem:
    index: int
    reason: str


@dataclass
class ParsedBatch:
    """Response parsed into a list; some items may have failed validation."""
    questions: List[GeneratedQuestion]
    parsed_count: int
    dropped: List[DroppedItem] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.dropped)


@dataclass
class ParseFailure:
    """Response could not be turned into a JSON array."""
    reason: str


ParseOutcome = Union[ParsedBatch, ParseFailure]


def _load_array(raw: str) -> Union[List[Any], ParseFailure]:
    cleaned = strip_code_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        repaired = repair_json(cleaned)
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError as e:
            return ParseFailure(f"Invalid JSON response from model: {e.msg}")

    # Some models wrap the array: {"questions": [...]}
    if isinstance(data, dict):
        for value in data.values():
            if isinstance(value, list):
                data = value
                break

    if not isinstance(data, list):
        return ParseFailure("Model response is not an array of questions")
    return data


def _first(item: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def parse_generation_response(
    raw: str,
    category: str,
    subject: Optional[str] = None,
    difficulty: Optional[str] = None,
    topic: Optional[str] = None,
) -> ParseOutcome:
    """
    Turn raw model text into validated questions.

    Never raises on bad input: malformed text yields ParseFailure and
    invalid items are reported in ParsedBatch.dropped.
    """
    loaded = _load_array(raw)
    if isinstance(loaded, ParseFailure):
        return loaded

    questions: List[GeneratedQuestion] = []
    dropped: List[DroppedItem] = []

    for index, item in enumerate(loaded):
        if not isinstance(item, dict):
            dropped.append(DroppedItem(index, f"expected object, got {type(item).__name__}"))
            continue
        try:
            questions.append(GeneratedQuestion(
                category=category,
                question=_first(item, "question", "stem"),
                options=_first(item, "options", "choices"),
                correct_answer=_first(item, "correctAnswer", "correct_answer", "answer"),
                explanation=_first(item, "explanation"),
                difficulty=_first(item, "difficulty") or difficulty or Difficulty.MEDIUM.value,
                subject=subject or _first(item, "subject"),
                topic=topic,
            ))
        except ValidationError as e:
            reason = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'item'}: {err['msg']}"
                for err in e.errors()
            )
            dropped.append(DroppedItem(index, reason))

    return ParsedBatch(questions=questions, parsed_count=len(loaded), dropped=dropped)


# ============================================================================
# GENERATOR
# ============================================================================

@dataclass
class GeneratedBatch:
    questions: List[GeneratedQuestion]
    parsed_count: int
    dropped: List[DroppedItem] = field(default_factory=list)


def _is_not_found(exc: Exception) -> bool:
    return isinstance(exc, NotFoundError) or getattr(exc, "status_code", None) == 404


class QuestionGenerator:
    """
    Generates batches of validated questions.

    Shared by both schedulers; safe to call concurrently since every call is
    an independent request. The detected model name is cached per instance.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        model: Optional[str] = None,
        candidate_models: Sequence[str] = (),
        timeout_seconds: float = 300.0,
    ):
        self.client = client or OpenAIChatClient()
        self.model = model
        self.candidate_models = tuple(candidate_models)
        self.timeout_seconds = timeout_seconds
        self._detected_model: Optional[str] = None
        self._model_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings) -> "QuestionGenerator":
        return cls(
            client=OpenAIChatClient(api_key=settings.openai_api_key, base_url=settings.openai_base_url),
            model=settings.llm_model,
            candidate_models=settings.candidate_models,
            timeout_seconds=settings.llm_timeout_seconds,
        )

    @property
    def detected_model(self) -> Optional[str]:
        return self._detected_model

    async def resolve_model(self) -> str:
        """
        Return the configured model, or probe candidates in order.

        A candidate that answers 404 is skipped; any other error is treated
        as transient and the candidate is accepted.
        """
        if self.model:
            return self.model
        if self._detected_model:
            return self._detected_model

        async with self._model_lock:
            if self._detected_model:
                return self._detected_model

            for candidate in self.candidate_models:
                try:
                    await self.client.probe(candidate)
                except Exception as e:
                    if _is_not_found(e):
                        logger.info("Model %s not available (404), trying next candidate", candidate)
                        continue
                    logger.warning("Model probe for %s failed with %s; accepting it", candidate, e)
                self._detected_model = candidate
                logger.info("Using detected model %s", candidate)
                return candidate

        raise GenerationError("No candidate model is available")

    async def generate_batch(
        self,
        category: Union[ExamCategory, str],
        count: int,
        subject: Optional[str] = None,
        difficulty: Optional[str] = None,
        sample_question: Optional[str] = None,
        areas_to_cover: Optional[str] = None,
        topic: Optional[str] = None,
    ) -> GeneratedBatch:
        """
        Generate up to ``count`` questions in one model call.

        Raises:
            GenerationError: empty response, unparseable response, zero valid
                questions, timeout, or provider failure
        """
        category_value = category.value if isinstance(category, ExamCategory) else str(category)
        if count < 1:
            raise GenerationError(f"count must be at least 1, got {count}")

        model = await self.resolve_model()
        prompt = build_generation_prompt(
            category_value, count, subject, difficulty, sample_question, areas_to_cover
        )

        try:
            raw = await asyncio.wait_for(
                self.client.complete(prompt, model),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise GenerationError(f"Model call timed out after {self.timeout_seconds:.0f}s")
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Failed to generate questions: {e}") from e

        if not raw or not raw.strip():
            raise GenerationError("No content received from model")

        outcome = parse_generation_response(raw, category_value, subject, difficulty, topic)
        if isinstance(outcome, ParseFailure):
            logger.error("Unparseable model response (%d chars): %s", len(raw), outcome.reason)
            raise GenerationError(outcome.reason)

        for item in outcome.dropped:
            logger.warning(
                "Dropped generated question %d for %s/%s: %s",
                item.index, category_value, subject, item.reason,
            )

        if not outcome.questions:
            raise GenerationError("No valid questions generated")

        return GeneratedBatch(
            questions=outcome.questions,
            parsed_count=outcome.parsed_count,
            dropped=outcome.dropped,
        )

    async def generate(
        self,
        category: Union[ExamCategory, str],
        count: int,
        subject: Optional[str] = None,
        difficulty: Optional[str] = None,
        sample_question: Optional[str] = None,
        areas_to_cover: Optional[str] = None,
    ) -> List[GeneratedQuestion]:
        """Generate questions and return only the validated list."""
        batch = await self.generate_batch(
            category, count, subject, difficulty, sample_question, areas_to_cover
        )
        return batch.questions
