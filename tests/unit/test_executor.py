from __future__ import annotations

import pytest

from gov2private.core.errors import ConfigurationError
from gov2private.llm.executor import (
    AITaskExecutor,
    Fallback,
    Ok,
    OutputShapeError,
    Unrecoverable,
    salvage_json,
    strip_code_fences,
)
from gov2private.llm.schemas import REQUIREMENTS_SCHEMA

MESSAGES = [{"role": "user", "content": "extract"}]


def _require_must_have(payload):
    if "must_have" not in payload:
        raise OutputShapeError("missing must_have")
    return payload["must_have"]


def test_first_valid_reply_is_ok(gateway_factory) -> None:
    gateway = gateway_factory({"requirements": {"must_have": ["SQL"], "nice_to_have": []}})
    result = AITaskExecutor(gateway).execute(MESSAGES, schema=REQUIREMENTS_SCHEMA, parse=_require_must_have)

    assert result == Ok(["SQL"])
    assert gateway.count("requirements") == 1


def test_retries_once_with_corrective_instruction(gateway_factory) -> None:
    gateway = gateway_factory({"requirements": ["Sure! Here you go.", {"must_have": ["Python"], "nice_to_have": []}]})
    result = AITaskExecutor(gateway).execute(MESSAGES, schema=REQUIREMENTS_SCHEMA, parse=_require_must_have)

    assert result == Ok(["Python"])
    assert gateway.count("requirements") == 2
    retry = gateway.messages[1]
    assert retry[-2] == {"role": "assistant", "content": "Sure! Here you go."}
    assert "requirements" in retry[-1]["content"]


def test_salvages_embedded_object_after_retry(gateway_factory) -> None:
    chatty = 'Here is the JSON: {"must_have": ["Excel"], "nice_to_have": []} hope that helps {'
    gateway = gateway_factory({"requirements": chatty})
    result = AITaskExecutor(gateway).execute(MESSAGES, schema=REQUIREMENTS_SCHEMA, parse=_require_must_have)

    assert result == Ok(["Excel"])
    assert gateway.count("requirements") == 2


def test_falls_back_after_bounded_attempts(gateway_factory) -> None:
    gateway = gateway_factory({"requirements": "no json here"})
    result = AITaskExecutor(gateway).execute(
        MESSAGES,
        schema=REQUIREMENTS_SCHEMA,
        parse=_require_must_have,
        fallback=["default"],
    )

    assert isinstance(result, Fallback)
    assert result.value == ["default"]
    assert gateway.count("requirements") == 2


def test_without_fallback_result_is_unrecoverable(gateway_factory) -> None:
    gateway = gateway_factory({"requirements": RuntimeError("timeout")})
    result = AITaskExecutor(gateway).execute(MESSAGES, schema=REQUIREMENTS_SCHEMA)

    assert result == Unrecoverable("no reply from model")


def test_shape_errors_count_as_parse_failures(gateway_factory) -> None:
    gateway = gateway_factory({"requirements": {"unexpected": True}})
    value = AITaskExecutor(gateway).run(
        MESSAGES,
        schema=REQUIREMENTS_SCHEMA,
        parse=_require_must_have,
        fallback=[],
    )

    assert value == []


def test_configuration_errors_propagate(gateway_factory) -> None:
    gateway = gateway_factory({"requirements": ConfigurationError("no provider")})
    with pytest.raises(ConfigurationError):
        AITaskExecutor(gateway).execute(MESSAGES, schema=REQUIREMENTS_SCHEMA, fallback=[])


def test_complete_text_returns_fallback_for_blank_reply(gateway_factory) -> None:
    executor = AITaskExecutor(gateway_factory(default="   "))

    assert executor.complete_text(MESSAGES, fallback=None) is None
    assert executor.complete_text(MESSAGES, fallback="x") == "x"


def test_strip_code_fences() -> None:
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("plain") == "plain"


def test_salvage_prefers_widest_balanced_object() -> None:
    text = 'prefix {"a": {"b": 1}} trailing } junk'
    assert salvage_json(text) == {"a": {"b": 1}}
    assert salvage_json("no braces") is None
    assert salvage_json("{ not json }") is None
