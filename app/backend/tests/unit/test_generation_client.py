from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import httpx
import openai

# Ensure repository root is on sys.path for imports
sys.path.append(str(Path(__file__).resolve().parents[4]))
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_reports.db")

from app.backend.src.schemas.report import ReportType
from app.backend.src.services.generation_client import (
    GenerationFailure,
    GenerationRequest,
    GenerationSuccess,
    OpenAIGenerationClient,
)
from app.backend.src.services.report_errors import GenerationFailureReason
from app.backend.src.services.report_prompts import get_report_definition

MARKET_CONTENT = {
    "month": "2024-11",
    "BSI_index": 98,
    "BSI_description": "Slightly pessimistic outlook.",
    "market_issue": "Milk prices up.",
    "trend": "Seasonal drinks.",
    "recommendations": ["Review supplier contracts"],
}

CHAT_URL = "https://api.openai.com/v1/chat/completions"


def _envelope(arguments, *, name: str = "generateMarketReport", **message_extra):
    return {
        "id": "chatcmpl-1",
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {"name": name, "arguments": arguments},
                        }
                    ],
                    **message_extra,
                },
            }
        ],
    }


def _client_returning(result):
    calls = []

    def create(**payload):
        calls.append(payload)
        if isinstance(result, Exception):
            raise result
        return result

    sdk = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return OpenAIGenerationClient(sdk, model="gpt-test"), calls


def _market_request() -> GenerationRequest:
    return GenerationRequest.for_report(
        ReportType.MARKET,
        {"month": "2024-11", "bsi_index": 98, "market_issue": "Milk up", "trend": "Matcha"},
    )


def test_payload_forces_the_report_function():
    client, calls = _client_returning(_envelope(json.dumps(MARKET_CONTENT)))

    client.generate(_market_request())

    payload = calls[0]
    assert payload["model"] == "gpt-test"
    assert [message["role"] for message in payload["messages"]] == ["system", "user"]
    assert "2024-11" in payload["messages"][0]["content"]
    assert "Milk up" in payload["messages"][1]["content"]
    function = payload["tools"][0]["function"]
    assert function["name"] == "generateMarketReport"
    assert set(function["parameters"]["required"]) == set(MARKET_CONTENT)
    assert payload["tool_choice"] == {
        "type": "function",
        "function": {"name": "generateMarketReport"},
    }


def test_industry_payload_uses_the_comparison_function():
    client, calls = _client_returning(_envelope("{}", name="generateIndustryComparisonReport"))
    request = GenerationRequest.for_report(
        "INDUSTRY_REPORT",
        {
            "average_market_metrics": {"average_revenue": 11810000},
            "average_expense_by_category": {},
            "my_income": {},
            "my_expense": {},
        },
    )

    client.generate(request)

    assert calls[0]["tool_choice"]["function"]["name"] == "generateIndustryComparisonReport"
    assert "11810000" in calls[0]["messages"][0]["content"]


def test_arguments_are_decoded_twice_and_validated():
    client, _ = _client_returning(_envelope(json.dumps(MARKET_CONTENT)))

    result = client.generate(_market_request())

    assert result == GenerationSuccess(content=MARKET_CONTENT)


def test_extra_fields_are_dropped():
    client, _ = _client_returning(_envelope(json.dumps({**MARKET_CONTENT, "confidence": 0.9})))

    result = client.generate(_market_request())

    assert isinstance(result, GenerationSuccess)
    assert "confidence" not in result.content


def test_legacy_function_call_shape_is_accepted():
    envelope = {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "function_call": {
                        "name": "generateMarketReport",
                        "arguments": json.dumps(MARKET_CONTENT),
                    },
                }
            }
        ]
    }
    client, _ = _client_returning(envelope)

    assert isinstance(client.generate(_market_request()), GenerationSuccess)


def test_sdk_objects_are_read_through_model_dump():
    completion = SimpleNamespace(model_dump=lambda: _envelope(json.dumps(MARKET_CONTENT)))
    client, _ = _client_returning(completion)

    assert client.generate(_market_request()) == GenerationSuccess(content=MARKET_CONTENT)


def test_missing_field_is_a_schema_violation():
    incomplete = {key: value for key, value in MARKET_CONTENT.items() if key != "trend"}
    client, _ = _client_returning(_envelope(json.dumps(incomplete)))

    result = client.generate(_market_request())

    assert isinstance(result, GenerationFailure)
    assert result.reason is GenerationFailureReason.SCHEMA_VIOLATION
    assert "trend" in result.detail


def test_wrong_field_type_is_a_schema_violation():
    client, _ = _client_returning(_envelope(json.dumps({**MARKET_CONTENT, "BSI_index": "98"})))

    result = client.generate(_market_request())

    assert result.reason is GenerationFailureReason.SCHEMA_VIOLATION
    assert "BSI_index" in result.detail


def test_object_arguments_are_a_schema_violation():
    client, _ = _client_returning(_envelope(MARKET_CONTENT))

    result = client.generate(_market_request())

    assert result.reason is GenerationFailureReason.SCHEMA_VIOLATION


def test_malformed_argument_json_is_a_schema_violation():
    client, _ = _client_returning(_envelope('{"month": "2024-11",'))

    result = client.generate(_market_request())

    assert result.reason is GenerationFailureReason.SCHEMA_VIOLATION


def test_missing_choices_is_a_schema_violation():
    client, _ = _client_returning({"id": "chatcmpl-1", "choices": []})

    result = client.generate(_market_request())

    assert result.reason is GenerationFailureReason.SCHEMA_VIOLATION


def test_wrong_function_name_is_a_schema_violation():
    client, _ = _client_returning(_envelope(json.dumps(MARKET_CONTENT), name="somethingElse"))

    result = client.generate(_market_request())

    assert result.reason is GenerationFailureReason.SCHEMA_VIOLATION


def test_refusal_is_an_upstream_error():
    client, _ = _client_returning(
        _envelope(json.dumps(MARKET_CONTENT), refusal="I can't help with that.")
    )

    result = client.generate(_market_request())

    assert result.reason is GenerationFailureReason.UPSTREAM_ERROR
    assert "can't help" in result.detail


def test_envelope_error_is_an_upstream_error():
    client, _ = _client_returning({"error": {"message": "model overloaded", "type": "server_error"}})

    result = client.generate(_market_request())

    assert result == GenerationFailure(GenerationFailureReason.UPSTREAM_ERROR, "model overloaded")


def test_connection_error_is_a_transport_error():
    error = openai.APIConnectionError(request=httpx.Request("POST", CHAT_URL))
    client, _ = _client_returning(error)

    result = client.generate(_market_request())

    assert result.reason is GenerationFailureReason.TRANSPORT_ERROR


def test_http_error_status_is_a_transport_error():
    request = httpx.Request("POST", CHAT_URL)
    error = openai.InternalServerError(
        "upstream failure",
        response=httpx.Response(502, request=request),
        body=None,
    )
    client, _ = _client_returning(error)

    result = client.generate(_market_request())

    assert result.reason is GenerationFailureReason.TRANSPORT_ERROR
    assert "502" in result.detail


def test_decode_response_accepts_raw_json_text():
    client, _ = _client_returning(None)
    definition = get_report_definition(ReportType.MARKET)

    result = client.decode_response(json.dumps(_envelope(json.dumps(MARKET_CONTENT))), definition)

    assert result == GenerationSuccess(content=MARKET_CONTENT)
