from __future__ import annotations

import logging
import re
from typing import Any

from gov2private.core.errors import InvalidReferenceError
from gov2private.llm.executor import AITaskExecutor, Ok, OutputShapeError
from gov2private.llm.prompts import (
    TRANSFORM_LINES_SYSTEM_PROMPT,
    TRANSFORM_SYSTEM_PROMPT,
    TRANSFORM_USER_PROMPT,
)
from gov2private.llm.schemas import BULLET_BATCH_SCHEMA

logger = logging.getLogger(__name__)

MAX_BULLET_CHARS = 300
MAX_BATCH = 20

STYLE_INSTRUCTIONS: dict[str, str] = {
    "short": "Shorten each bullet to one concise line (under 20 words) while keeping its key result.",
    "quant": "Add or sharpen quantified impact (numbers, percentages, scale, time saved) without inventing facts.",
    "lead": "Emphasize leadership, ownership and cross-team influence with strong action verbs.",
    "ats": "Optimize for applicant tracking systems: use standard industry keywords and plain phrasing.",
    "dejargon": "Replace government and agency jargon and acronyms with private-sector language.",
}

_MARKER = re.compile(r"^\s*(?:[-–•*]+|\d+[.)])\s*")
_QUOTES = "\"'“”‘’"


def clean_line(text: Any) -> str:
    line = _MARKER.sub("", str(text)).strip()
    return line.strip(_QUOTES).strip()[:MAX_BULLET_CHARS]


def instruction_for(style: str | None, prompt: str | None = None) -> str:
    if prompt and prompt.strip():
        return prompt.strip()[:500]
    if style in STYLE_INSTRUCTIONS:
        return STYLE_INSTRUCTIONS[style]
    raise InvalidReferenceError(f"unknown style '{style}'")


def count_parser(expected: int):
    def parse(payload: Any) -> list[str]:
        if not isinstance(payload, dict) or not isinstance(payload.get("bullets"), list):
            raise OutputShapeError("expected an object with a bullets array")
        bullets = payload["bullets"]
        if len(bullets) != expected:
            raise OutputShapeError(f"expected {expected} bullets, got {len(bullets)}")
        return [str(item) for item in bullets]

    return parse


class BulletTransformEngine:
    def __init__(self, executor: AITaskExecutor):
        self.executor = executor

    def transform_batch(self, bullets: list[str], instruction: str, indices: list[int]) -> list[str]:
        """Rewrite ``bullets[i]`` for each ``i`` in ``indices``.

        Always returns exactly ``len(indices)`` strings, in ``indices``
        order. Slots the model leaves empty keep the original text.
        """
        for index in indices:
            if index < 0 or index >= len(bullets):
                raise InvalidReferenceError(f"bullet index {index} out of range (0..{len(bullets) - 1})")
        if not indices:
            return []

        originals = [bullets[i] for i in indices]
        rewritten: list[str] = []
        for start in range(0, len(originals), MAX_BATCH):
            chunk = originals[start : start + MAX_BATCH]
            rewritten.extend(self._transform_chunk(chunk, instruction))
        return rewritten

    def _transform_chunk(self, originals: list[str], instruction: str) -> list[str]:
        count = len(originals)
        listing = "\n".join(f"{k + 1}. {text[:400]}" for k, text in enumerate(originals))
        user_prompt = TRANSFORM_USER_PROMPT.format(instruction=instruction, count=count, listing=listing)

        result = self.executor.execute(
            [
                {"role": "system", "content": TRANSFORM_SYSTEM_PROMPT.format(count=count)},
                {"role": "user", "content": user_prompt},
            ],
            schema=BULLET_BATCH_SCHEMA,
            parse=count_parser(count),
            task="transform_batch",
        )
        if isinstance(result, Ok):
            lines = result.value
        else:
            logger.warning("Bullet batch schema path failed; using line-split path")
            text = self.executor.complete_text(
                [
                    {"role": "system", "content": TRANSFORM_LINES_SYSTEM_PROMPT.format(count=count)},
                    {"role": "user", "content": user_prompt},
                ],
                fallback="",
                task="transform_batch_lines",
                max_tokens=900,
            )
            lines = [clean_line(line) for line in (text or "").splitlines()]
            lines = [line for line in lines if line][:count]

        out: list[str] = []
        for k, original in enumerate(originals):
            candidate = clean_line(lines[k]) if k < len(lines) else ""
            out.append(candidate or original)
        return out
