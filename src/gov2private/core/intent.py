"""Resolve free-form chat messages into bullet edit intents.

Three layers are tried in order:

1. a model parse through the task executor, accepted only when confident;
2. rule tables (``STYLE_RULES``, ``JOB_RULES``, ``INDEX_RULES``) over the
   lower-cased message with quoted snippets removed;
3. fuzzy matching of a quoted snippet against every bullet.

Explicit indices from layer 2 win over layer 3. When nothing names a
target, the edit applies to every bullet of every job.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from gov2private.config import Settings, get_settings
from gov2private.core.errors import InvalidReferenceError
from gov2private.llm.executor import AITaskExecutor, Ok, OutputShapeError
from gov2private.llm.prompts import INTENT_SYSTEM_PROMPT, INTENT_USER_PROMPT
from gov2private.llm.schemas import BULLET_EDIT_INTENT_SCHEMA
from gov2private.types import BulletEditIntent, BulletTarget, ExperienceEntry

logger = logging.getLogger(__name__)

ALL = "all"

WORD_NUMBERS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
}

ORDINALS = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
    "sixth": 6,
    "seventh": 7,
    "eighth": 8,
    "ninth": 9,
    "tenth": 10,
}

_ORDINAL_WORDS = "|".join(ORDINALS)
_COUNT_WORDS = "|".join(WORD_NUMBERS)
_BULLET_NOUN = r"(?:bullets?|points?|lines?|items?)"

# Ordered: the first matching rule decides the style.
STYLE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(?:de-?jargon\w*|jargon\w*|acronyms?|plain (?:english|language)|civilian\w*|less government\w*)"), "dejargon"),
    (re.compile(r"\b(?:ats|applicant tracking|keywords?|keyword[- ]optimi[sz]\w*)\b"), "ats"),
    (re.compile(r"\b(?:quantif\w*|metrics?|measurable|kpis?|percentages?|(?:add|more|with) numbers)\b"), "quant"),
    (re.compile(r"\b(?:shorten\w*|shorter|short|concise\w*|condense\w*|trim\w*|tighten\w*|brief\w*|cut down|less wordy)\b"), "short"),
    (re.compile(r"\b(?:leadership|lead|leader|leading|ownership|managerial|more senior|strategic)\b"), "lead"),
)

# Generic improvement words map to the leadership style.
IMPROVE_PATTERN = re.compile(
    r"\b(?:improve\w*|better|enhance\w*|polish\w*|strengthen\w*|stronger|punch\w*|rewrite|refine\w*|tailor\w*|impactful)\b"
)


def _job_by_number(match: re.Match[str], job_count: int) -> int:
    return int(match.group(1)) - 1


def _job_by_ordinal(match: re.Match[str], job_count: int) -> int:
    word = match.group(1)
    if word == "last":
        return job_count - 1
    if word in {"most recent", "latest", "current"}:
        return 0
    return ORDINALS[word] - 1


JOB_RULES: tuple[tuple[re.Pattern[str], Callable[[re.Match[str], int], int]], ...] = (
    (re.compile(r"\b(?:job|role|position)\s*#?(\d+)\b"), _job_by_number),
    (
        re.compile(rf"\b({_ORDINAL_WORDS}|last|most recent|latest|current)\s+(?:job|role|position)\b"),
        _job_by_ordinal,
    ),
)


def _count(token: str) -> int:
    if token.isdigit():
        return int(token)
    return WORD_NUMBERS[token]


def _range(match: re.Match[str], count: int) -> list[int]:
    low, high = sorted((int(match.group(1)), int(match.group(2))))
    # an out-of-range low still yields one index so the caller can report it
    high = min(high, max(count, low))
    return list(range(low - 1, high))


def _explicit_list(match: re.Match[str], count: int) -> list[int]:
    return [int(n) - 1 for n in re.findall(r"\d+", match.group(1))]


def _first_or_last_n(match: re.Match[str], count: int) -> list[int]:
    n = min(_count(match.group(2)), count)
    if match.group(1) in {"first", "top"}:
        return list(range(n))
    return list(range(count - n, count))


def _ordinal(match: re.Match[str], count: int) -> list[int]:
    word = match.group(1)
    if word == "last":
        return [count - 1]
    if word in ORDINALS:
        return [ORDINALS[word] - 1]
    return [int(re.match(r"\d+", word).group(0)) - 1]


def _all(match: re.Match[str], count: int) -> str:
    return ALL


# Ordered: the first rule that matches decides the indices.
INDEX_RULES: tuple[tuple[re.Pattern[str], Callable[[re.Match[str], int], Any]], ...] = (
    (re.compile(rf"\b{_BULLET_NOUN}\s*#?(\d+)\s*(?:-|–|to|through|thru)\s*#?(\d+)\b"), _range),
    (re.compile(rf"\b{_BULLET_NOUN}\s*#?(\d+(?:\s*(?:,|and|&)\s*#?\d+)*)\b"), _explicit_list),
    (re.compile(rf"#(\d+(?:\s*(?:,|and|&)\s*#\d+)*)\b"), _explicit_list),
    (re.compile(rf"\b(first|top|last|bottom)\s+(\d+|{_COUNT_WORDS})\b"), _first_or_last_n),
    (re.compile(rf"\b({_ORDINAL_WORDS}|last|\d+(?:st|nd|rd|th))\b(?:\s+(?:{_BULLET_NOUN}|one))?"), _ordinal),
    (re.compile(r"\b(?:all|every|each|entire|whole|everything)\b"), _all),
)

_QUOTED = (
    re.compile(r"[\"“”]([^\"“”]{4,})[\"“”]"),
    re.compile(r"(?:^|\s)['‘]([^'‘’]{4,})['’](?=\s|$|[.,!?;:])"),
)

_NORMALIZE_PUNCT = re.compile(r"[^\w\s%$]")


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def normalize_text(text: str) -> str:
    return " ".join(_NORMALIZE_PUNCT.sub(" ", text.lower()).split())


def similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]."""
    a, b = normalize_text(a), normalize_text(b)
    if not a and not b:
        return 1.0
    longest = max(len(a), len(b))
    return 1.0 - levenshtein(a, b) / longest


def snippet_similarity(snippet: str, bullet: str) -> float:
    """Best of whole-bullet similarity and similarity against any word
    window of the bullet as long as the snippet."""
    best = similarity(snippet, bullet)
    words = normalize_text(bullet).split()
    width = len(normalize_text(snippet).split())
    if 0 < width < len(words):
        for start in range(len(words) - width + 1):
            best = max(best, similarity(snippet, " ".join(words[start : start + width])))
    return best


def extract_snippet(message: str) -> str | None:
    for pattern in _QUOTED:
        match = pattern.search(message)
        if match:
            return match.group(1).strip()
    return None


def detect_style(text: str) -> str | None:
    lowered = text.lower()
    for pattern, style in STYLE_RULES:
        if pattern.search(lowered):
            return style
    if IMPROVE_PATTERN.search(lowered):
        return "lead"
    return None


@dataclass(slots=True)
class HeuristicParse:
    style: str | None
    job_index: int | None
    indices: list[int] | str | None


def _strip_quotes(text: str) -> str:
    for pattern in _QUOTED:
        text = pattern.sub(" ", text)
    return text


def heuristic_parse(message: str, jobs: list[ExperienceEntry]) -> HeuristicParse:
    """Apply the rule tables. Raises ``InvalidReferenceError`` for a job or
    bullet number that does not exist, but only when the message asks for
    an edit at all. Quoted snippets are left to the fuzzy layer."""
    text = _strip_quotes(message.lower())
    style = detect_style(text)
    if style is None:
        return HeuristicParse(style=None, job_index=None, indices=None)

    job_index: int | None = None
    for pattern, extractor in JOB_RULES:
        match = pattern.search(text)
        if match:
            job_index = extractor(match, len(jobs))
            text = text[: match.start()] + " " + text[match.end() :]
            break
    if job_index is None:
        job_index = _job_by_name(text, jobs)
    if job_index is not None and not 0 <= job_index < len(jobs):
        raise InvalidReferenceError(f"job {job_index + 1} does not exist (resume has {len(jobs)} jobs)")

    target_job = job_index if job_index is not None else _first_job_with_bullets(jobs)
    bullet_count = len(jobs[target_job].bullets) if jobs else 0
    indices: list[int] | str | None = None
    for pattern, extractor in INDEX_RULES:
        match = pattern.search(text)
        if not match:
            continue
        found = extractor(match, bullet_count)
        if found == ALL:
            indices = ALL
            break
        if not found:
            # "first 0 bullets" names no bullet; treat as no reference
            break
        valid = sorted({i for i in found if 0 <= i < bullet_count})
        if not valid:
            raise InvalidReferenceError(
                f"bullet {found[0] + 1} does not exist (job has {bullet_count} bullets)"
            )
        indices = valid
        break

    if isinstance(indices, list) and job_index is None:
        job_index = target_job
    return HeuristicParse(style=style, job_index=job_index, indices=indices)


def _first_job_with_bullets(jobs: list[ExperienceEntry]) -> int:
    return next((i for i, job in enumerate(jobs) if job.bullets), 0)


def _job_by_name(text: str, jobs: list[ExperienceEntry]) -> int | None:
    for index, job in enumerate(jobs):
        for label in (job.org, job.title):
            label = (label or "").lower().strip()
            if len(label) >= 4 and label in text:
                return index
    return None


def all_targets(jobs: list[ExperienceEntry], job_index: int | None = None) -> list[BulletTarget]:
    selected = range(len(jobs)) if job_index is None else [job_index]
    return [
        BulletTarget(job_index=i, bullet_indices=list(range(len(jobs[i].bullets))))
        for i in selected
        if jobs[i].bullets
    ]


def parse_intent_payload(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict) or not isinstance(payload.get("targets"), list):
        raise OutputShapeError("expected an object with a targets array")
    return payload


class EditIntentResolver:
    def __init__(self, executor: AITaskExecutor | None, settings: Settings | None = None):
        self.executor = executor
        self.settings = settings or get_settings()

    def resolve(self, message: str, jobs: list[ExperienceEntry]) -> BulletEditIntent | None:
        if not message.strip() or not any(job.bullets for job in jobs):
            return None

        intent = self._from_model(message, jobs)
        if intent is not None:
            return intent

        parsed = heuristic_parse(message, jobs)
        if parsed.style is None:
            logger.info("No actionable edit intent in chat message")
            return None

        if isinstance(parsed.indices, list):
            job_index = parsed.job_index if parsed.job_index is not None else 0
            return BulletEditIntent(
                style=parsed.style,
                targets=[BulletTarget(job_index=job_index, bullet_indices=parsed.indices)],
                confidence=0.7,
                source="heuristic",
            )

        if parsed.indices is None:
            snippet = extract_snippet(message)
            if snippet:
                targets = self._fuzzy_targets(snippet, jobs, parsed.job_index)
                if targets:
                    return BulletEditIntent(style=parsed.style, targets=targets, confidence=0.6, source="fuzzy")

        targets = all_targets(jobs, parsed.job_index)
        return BulletEditIntent(
            style=parsed.style,
            targets=targets,
            confidence=0.5,
            source="heuristic" if parsed.indices == ALL or parsed.job_index is not None else "default",
        )

    def _from_model(self, message: str, jobs: list[ExperienceEntry]) -> BulletEditIntent | None:
        if self.executor is None:
            return None

        listing = "\n".join(
            f"Job {j + 1}: {job.title} at {job.org}\n"
            + "\n".join(f"  {b + 1}. {bullet[:200]}" for b, bullet in enumerate(job.bullets))
            for j, job in enumerate(jobs)
        )
        result = self.executor.execute(
            [
                {"role": "system", "content": INTENT_SYSTEM_PROMPT},
                {"role": "user", "content": INTENT_USER_PROMPT.format(message=message[:1000], listing=listing)},
            ],
            schema=BULLET_EDIT_INTENT_SCHEMA,
            parse=parse_intent_payload,
            task="resolve_intent",
            max_tokens=400,
        )
        if not isinstance(result, Ok):
            return None

        payload = result.value
        style = payload.get("style")
        try:
            confidence = float(payload.get("confidence") or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0
        if style not in {"short", "quant", "lead", "ats", "dejargon"}:
            return None
        if confidence <= self.settings.intent_confidence_min:
            return None

        raw_targets = payload["targets"]
        if not raw_targets:
            targets = all_targets(jobs)
        else:
            targets = self._clamp_targets(raw_targets, jobs)
            if not targets:
                return None

        return BulletEditIntent(style=style, targets=targets, confidence=min(confidence, 1.0), source="model")

    @staticmethod
    def _clamp_targets(raw_targets: list[Any], jobs: list[ExperienceEntry]) -> list[BulletTarget]:
        merged: dict[int, set[int]] = {}
        for raw in raw_targets:
            if not isinstance(raw, dict):
                continue
            try:
                job_index = int(raw.get("jobIndex", raw.get("job_index")))
            except (TypeError, ValueError):
                continue
            if not 0 <= job_index < len(jobs):
                continue
            count = len(jobs[job_index].bullets)
            indices = raw.get("bulletIndices", raw.get("bullet_indices")) or []
            valid = {
                int(i) for i in indices if isinstance(i, (int, float)) and not isinstance(i, bool) and 0 <= int(i) < count
            }
            if valid:
                merged.setdefault(job_index, set()).update(valid)

        return [BulletTarget(job_index=j, bullet_indices=sorted(merged[j])) for j in sorted(merged)]

    def _fuzzy_targets(
        self, snippet: str, jobs: list[ExperienceEntry], job_index: int | None = None
    ) -> list[BulletTarget]:
        scored: list[tuple[float, int, int]] = []
        selected = range(len(jobs)) if job_index is None else [job_index]
        for j in selected:
            for b, bullet in enumerate(jobs[j].bullets):
                scored.append((snippet_similarity(snippet, bullet), j, b))
        if not scored:
            return []

        scored.sort(key=lambda item: item[0], reverse=True)
        high = [item for item in scored if item[0] >= self.settings.fuzzy_match_high]
        if high:
            chosen = high[: self.settings.fuzzy_match_max]
        elif scored[0][0] >= self.settings.fuzzy_match_floor:
            chosen = scored[:1]
        else:
            logger.info("Quoted snippet matched no bullet (best=%.2f)", scored[0][0])
            return []

        merged: dict[int, set[int]] = {}
        for _, j, b in chosen:
            merged.setdefault(j, set()).add(b)
        return [BulletTarget(job_index=j, bullet_indices=sorted(merged[j])) for j in sorted(merged)]
