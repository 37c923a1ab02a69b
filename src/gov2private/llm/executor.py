"""Schema-guarded model calls.

Every structured model call in the pipelines goes through
:class:`AITaskExecutor`, which turns the untyped text channel into a typed
result using a bounded ladder:

1. call the model with the JSON schema as a structural contract,
2. on a parse failure, call once more with a corrective instruction,
3. salvage the first balanced ``{...}`` object embedded in any reply,
4. return the caller's fallback and log a warning.

Malformed output and transport errors never raise out of :meth:`execute`;
the caller always receives a :data:`TaskResult`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

from pydantic import ValidationError

from gov2private.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING: Any = object()

CORRECTIVE_INSTRUCTION = (
    "Your previous reply was not valid JSON matching the schema '{name}'. "
    "Respond with ONLY a JSON value matching this schema, no prose and no code fences:\n{schema}"
)


class TextGenerator(Protocol):
    def generate(
        self,
        messages: list[dict[str, str]],
        *,
        schema: dict[str, Any] | None = None,
        max_tokens: int | None = None,
    ) -> str: ...


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Fallback(Generic[T]):
    value: T
    reason: str


@dataclass(frozen=True, slots=True)
class Unrecoverable:
    reason: str


TaskResult = Ok | Fallback | Unrecoverable


class OutputShapeError(ValueError):
    """Raised by parsers when a payload is valid JSON but the wrong shape."""


def strip_code_fences(content: str) -> str:
    candidate = content.strip()
    if "```" not in candidate:
        return candidate

    for part in candidate.split("```"):
        part = part.strip()
        if part.startswith("json"):
            part = part[4:].strip()
        if (part.startswith("{") and part.endswith("}")) or (part.startswith("[") and part.endswith("]")):
            return part
    return candidate


def parse_json_text(content: str) -> Any:
    candidate = strip_code_fences(content)
    if not candidate:
        raise OutputShapeError("empty model reply")
    return json.loads(candidate)


def salvage_json(content: str) -> Any | None:
    """Return the first balanced JSON object embedded in ``content``.

    Starts at the first ``{`` and tries every ``}`` from the end of the text
    backwards, so the widest parsable object wins.
    """
    start = content.find("{")
    if start == -1:
        return None

    end = content.rfind("}")
    while end > start:
        try:
            return json.loads(content[start : end + 1])
        except json.JSONDecodeError:
            end = content.rfind("}", start, end)
    return None


class AITaskExecutor:
    def __init__(self, gateway: TextGenerator):
        self.gateway = gateway

    def execute(
        self,
        messages: list[dict[str, str]],
        *,
        schema: dict[str, Any],
        parse: Callable[[Any], T] | None = None,
        fallback: T = _MISSING,
        task: str = "task",
        max_tokens: int | None = None,
    ) -> TaskResult:
        replies: list[str] = []

        raw = self._call(messages, schema=schema, task=task, max_tokens=max_tokens)
        if raw is not None:
            replies.append(raw)
            value = self._try_parse(raw, parse)
            if value is not _MISSING:
                return Ok(value)

        retry_messages = list(messages)
        if raw:
            retry_messages.append({"role": "assistant", "content": raw[:4000]})
        retry_messages.append(
            {
                "role": "user",
                "content": CORRECTIVE_INSTRUCTION.format(
                    name=schema.get("name", "result"),
                    schema=json.dumps(schema.get("schema", {}), ensure_ascii=True),
                ),
            }
        )
        logger.info("Retrying %s with corrective instruction", task)
        raw = self._call(retry_messages, schema=schema, task=task, max_tokens=max_tokens)
        if raw is not None:
            replies.append(raw)
            value = self._try_parse(raw, parse)
            if value is not _MISSING:
                return Ok(value)

        for reply in reversed(replies):
            salvaged = salvage_json(reply)
            if salvaged is None:
                continue
            value = self._apply_parser(salvaged, parse)
            if value is not _MISSING:
                logger.info("Salvaged embedded JSON for %s", task)
                return Ok(value)

        reason = "no reply from model" if not replies else "unparseable model output"
        if fallback is _MISSING:
            logger.warning("%s failed without fallback: %s", task, reason)
            return Unrecoverable(reason)

        logger.warning("%s fell back to default: %s", task, reason)
        return Fallback(fallback, reason)

    def run(
        self,
        messages: list[dict[str, str]],
        *,
        schema: dict[str, Any],
        fallback: T,
        parse: Callable[[Any], T] | None = None,
        task: str = "task",
        max_tokens: int | None = None,
    ) -> T:
        result = self.execute(
            messages,
            schema=schema,
            parse=parse,
            fallback=fallback,
            task=task,
            max_tokens=max_tokens,
        )
        if isinstance(result, (Ok, Fallback)):
            return result.value
        return fallback

    def complete_text(
        self,
        messages: list[dict[str, str]],
        *,
        fallback: str | None = "",
        task: str = "task",
        max_tokens: int | None = None,
    ) -> str | None:
        raw = self._call(messages, schema=None, task=task, max_tokens=max_tokens)
        if raw is None or not raw.strip():
            logger.warning("%s returned no text; using fallback", task)
            return fallback
        return raw.strip()

    def _call(
        self,
        messages: list[dict[str, str]],
        *,
        schema: dict[str, Any] | None,
        task: str,
        max_tokens: int | None,
    ) -> str | None:
        try:
            return self.gateway.generate(messages, schema=schema, max_tokens=max_tokens)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.warning("Model call failed task=%s error=%s", task, exc)
            return None

    def _try_parse(self, raw: str, parse: Callable[[Any], T] | None) -> Any:
        try:
            payload = parse_json_text(raw)
        except (json.JSONDecodeError, OutputShapeError):
            return _MISSING
        return self._apply_parser(payload, parse)

    @staticmethod
    def _apply_parser(payload: Any, parse: Callable[[Any], T] | None) -> Any:
        if parse is None:
            return payload
        try:
            return parse(payload)
        except (ValidationError, OutputShapeError, TypeError, KeyError, ValueError):
            return _MISSING
