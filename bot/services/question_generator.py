"""Service for generating battle questions with an LLM."""

import json
import logging
import re
from typing import Any, Optional

import groq
from groq import AsyncGroq

from config import Config
from errors import DependencyUnavailableError, GenerationFailedError
from models import BattleQuestion

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = "Return strict JSON only."

MAX_OPTIONS = 4
MIN_OPTIONS = 2

JSON_CODE_BLOCK_PATTERN = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)


def build_battle_prompt(source_text: str, question_count: int) -> str:
    """Build the user instruction asking for question_count questions."""
    return (
        f"Create {question_count} quiz battle questions with 4 options each based on this study content:\n\n"
        f"{source_text}\n\n"
        'Return JSON as {"questions":[{"question":"...","options":["A","B","C","D"],'
        '"correctAnswer":"exact option text"}]}'
    )


def extract_json_block(raw: str) -> Optional[Any]:
    """Parse JSON out of an LLM reply.

    Tries the whole reply, then a ```json fenced block, then the span between
    the first '{' and the last '}'. Returns None if none of them parse.
    """
    direct = raw.strip()

    try:
        return json.loads(direct)
    except json.JSONDecodeError:
        pass

    match = JSON_CODE_BLOCK_PATTERN.search(direct)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass

    first_brace = direct.find("{")
    last_brace = direct.rfind("}")
    if first_brace >= 0 and last_brace > first_brace:
        try:
            return json.loads(direct[first_brace : last_brace + 1])
        except json.JSONDecodeError:
            return None

    return None


def _clean_options(raw_options: Any) -> list[str]:
    if not isinstance(raw_options, list):
        return []
    options = []
    for option in raw_options:
        if option is None:
            continue
        text = str(option).strip()
        if text and text not in options:
            options.append(text)
    return options[:MAX_OPTIONS]


def parse_questions(payload: Any, limit: int) -> list[BattleQuestion]:
    """Turn a parsed JSON payload into validated questions.

    Candidates beyond limit are ignored. A candidate is kept only if it has
    question text and at least two distinct non-empty options.
    """
    if not isinstance(payload, dict):
        return []
    candidates = payload.get("questions")
    if not isinstance(candidates, list):
        return []

    questions = []
    for item in candidates[:limit]:
        if not isinstance(item, dict):
            continue
        text = str(item.get("question") or "").strip()
        options = _clean_options(item.get("options"))
        correct_answer = str(item.get("correctAnswer") or "").strip()
        if not text or len(options) < MIN_OPTIONS:
            continue
        questions.append(BattleQuestion(question=text, options=options, correct_answer=correct_answer))
    return questions


class QuestionGenerator:
    """Generates battle questions through the Groq chat completions API."""

    def __init__(
        self,
        client: Optional[AsyncGroq] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.client = client or AsyncGroq(api_key=Config.GROQ_API_KEY)
        self.model = model or Config.GROQ_MODEL
        self.temperature = Config.GENERATION_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or Config.GENERATION_MAX_TOKENS

    async def generate(
        self,
        system_instruction: str,
        user_instruction: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Run one chat completion and return the reply text."""
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": user_instruction})

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                temperature=temperature,
                max_tokens=max_tokens,
                messages=messages,
            )
        except groq.APIError as e:
            logger.warning(f"Question generation request failed: {e}")
            raise DependencyUnavailableError("question generator", str(e)) from e

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    async def generate_questions(self, source_text: str, question_count: int) -> list[BattleQuestion]:
        """Generate up to question_count questions from source_text.

        Raises GenerationFailedError if nothing usable comes back.
        """
        raw = await self.generate(
            SYSTEM_INSTRUCTION,
            build_battle_prompt(source_text, question_count),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        payload = extract_json_block(raw)
        if payload is None:
            logger.warning(f"Generated reply was not JSON ({len(raw)} chars)")
            raise GenerationFailedError()

        questions = parse_questions(payload, question_count)
        if not questions:
            logger.warning("Generated reply contained no usable questions")
            raise GenerationFailedError()

        logger.info(f"Generated {len(questions)} of {question_count} requested questions")
        return questions
