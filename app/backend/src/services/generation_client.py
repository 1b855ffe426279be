"""Client for the external text-generation service.

Wire contract
-------------
The request is a chat-completions document: a model identifier, role-tagged
messages, one function declaration whose parameters are the report's JSON
schema, and a directive forcing the model to call that function.

The response is decoded in two explicit stages:

1. the envelope is read as JSON and the function call's ``arguments`` is
   located; it must be a JSON *string*;
2. that string is parsed again and validated against the report's content
   model.

Anything that does not follow this shape is a schema violation.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Union

import openai
import structlog
from openai import OpenAI
from pydantic import ValidationError

from app.backend.src.schemas.report import ReportType
from app.backend.src.services.report_errors import GenerationFailureReason
from app.backend.src.services.report_prompts import ReportDefinition, get_report_definition

LOGGER = structlog.get_logger(__name__)

DEFAULT_MODEL = "gpt-4o"


@dataclass(frozen=True)
class GenerationRequest:
    report_type: ReportType
    context_fields: dict[str, Any] = field(default_factory=dict)
    response_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_report(
        cls, report_type: ReportType | str, context_fields: Mapping[str, Any]
    ) -> "GenerationRequest":
        definition = get_report_definition(report_type)
        return cls(
            report_type=definition.report_type,
            context_fields=dict(context_fields),
            response_schema=definition.response_schema,
        )


@dataclass(frozen=True)
class GenerationSuccess:
    content: dict[str, Any]


@dataclass(frozen=True)
class GenerationFailure:
    reason: GenerationFailureReason
    detail: str = ""


GenerationResult = Union[GenerationSuccess, GenerationFailure]


class GenerationClient(Protocol):
    def generate(self, request: GenerationRequest) -> GenerationResult:
        ...


class _Violation(Exception):
    """Raised internally when the envelope deviates from the wire contract."""


def _envelope_as_dict(completion: Any) -> dict[str, Any]:
    if isinstance(completion, Mapping):
        return dict(completion)
    if isinstance(completion, (str, bytes)):
        decoded = json.loads(completion)
        if isinstance(decoded, dict):
            return decoded
        raise _Violation("response envelope is not a JSON object")
    if hasattr(completion, "model_dump"):
        return completion.model_dump()
    raise _Violation(f"unexpected response envelope type {type(completion).__name__}")


def _first_choice(envelope: Mapping[str, Any]) -> Mapping[str, Any]:
    choices = envelope.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], Mapping):
        raise _Violation("response has no choices")
    return choices[0]


def _upstream_error(envelope: Mapping[str, Any]) -> str | None:
    """Return a description when the service reports an error in the envelope."""

    error = envelope.get("error")
    if error:
        if isinstance(error, Mapping):
            return str(error.get("message") or error.get("type") or error)
        return str(error)

    choices = envelope.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], Mapping):
        choice = choices[0]
        if choice.get("finish_reason") == "content_filter":
            return "response blocked by content filter"
        message = choice.get("message")
        if isinstance(message, Mapping) and message.get("refusal"):
            return f"model refused: {message['refusal']}"
    return None


def _function_arguments(envelope: Mapping[str, Any], function_name: str) -> str:
    """Stage one: locate the JSON-encoded arguments of the forced function call."""

    message = _first_choice(envelope).get("message")
    if not isinstance(message, Mapping):
        raise _Violation("response choice has no message")

    call: Any = None
    tool_calls = message.get("tool_calls")
    if isinstance(tool_calls, list) and tool_calls:
        first = tool_calls[0]
        call = first.get("function") if isinstance(first, Mapping) else None
    elif isinstance(message.get("function_call"), Mapping):
        # Legacy functions API shape
        call = message["function_call"]

    if not isinstance(call, Mapping):
        raise _Violation("response does not contain a function call")

    name = call.get("name")
    if name and name != function_name:
        raise _Violation(f"model called {name!r} instead of {function_name!r}")

    arguments = call.get("arguments")
    if not isinstance(arguments, str):
        raise _Violation("function call arguments are not a JSON-encoded string")
    return arguments


class OpenAIGenerationClient:
    """Generation client backed by the OpenAI chat-completions API.

    Retries are disabled on the SDK client; retry policy belongs to the engine.
    """

    def __init__(self, client: OpenAI, *, model: str = DEFAULT_MODEL) -> None:
        self._client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings) -> "OpenAIGenerationClient":
        api_key = settings.openai_api_key
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not configured.")
        client = OpenAI(
            api_key=api_key.strip(),
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout_seconds,
            max_retries=0,
        )
        return cls(client, model=settings.openai_model)

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        definition = get_report_definition(request.report_type)
        context = request.context_fields
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": definition.system_prompt(context)},
                {"role": "user", "content": definition.user_prompt(context)},
            ],
            "tools": [
                {
                    "type": "function",
                    "function": {
                        "name": definition.function_name,
                        "description": definition.description,
                        "parameters": request.response_schema or definition.response_schema,
                    },
                }
            ],
            "tool_choice": {
                "type": "function",
                "function": {"name": definition.function_name},
            },
        }

    def generate(self, request: GenerationRequest) -> GenerationResult:
        payload = self.build_payload(request)
        LOGGER.info(
            "generation_request_sent",
            report_type=request.report_type.value,
            model=self.model,
            context_fields=sorted(request.context_fields),
        )

        try:
            completion = self._client.chat.completions.create(**payload)
        except openai.APIStatusError as exc:
            LOGGER.warning(
                "generation_http_error",
                report_type=request.report_type.value,
                status_code=exc.status_code,
            )
            return GenerationFailure(
                GenerationFailureReason.TRANSPORT_ERROR,
                f"generation service returned HTTP {exc.status_code}",
            )
        except openai.APIConnectionError as exc:
            # Includes APITimeoutError
            LOGGER.warning(
                "generation_transport_failed",
                report_type=request.report_type.value,
                error=str(exc),
            )
            return GenerationFailure(GenerationFailureReason.TRANSPORT_ERROR, str(exc))
        except openai.APIError as exc:
            LOGGER.warning(
                "generation_api_error",
                report_type=request.report_type.value,
                error=str(exc),
            )
            return GenerationFailure(GenerationFailureReason.TRANSPORT_ERROR, str(exc))

        return self.decode_response(completion, get_report_definition(request.report_type))

    def decode_response(self, completion: Any, definition: ReportDefinition) -> GenerationResult:
        report_type = definition.report_type.value
        try:
            envelope = _envelope_as_dict(completion)
        except (_Violation, ValueError) as exc:
            return self._violation(report_type, str(exc))

        upstream = _upstream_error(envelope)
        if upstream:
            LOGGER.warning("generation_upstream_error", report_type=report_type, detail=upstream)
            return GenerationFailure(GenerationFailureReason.UPSTREAM_ERROR, upstream)

        try:
            arguments = _function_arguments(envelope, definition.function_name)
        except _Violation as exc:
            return self._violation(report_type, str(exc))

        try:
            decoded = json.loads(arguments)
        except json.JSONDecodeError as exc:
            return self._violation(report_type, f"function arguments are not valid JSON: {exc}")
        if not isinstance(decoded, dict):
            return self._violation(report_type, "function arguments are not a JSON object")

        try:
            content = definition.content_model.model_validate(decoded)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in exc.errors()
            )
            return self._violation(report_type, problems)

        return GenerationSuccess(content=content.model_dump(mode="json"))

    @staticmethod
    def _violation(report_type: str, detail: str) -> GenerationFailure:
        LOGGER.warning("generation_schema_violation", report_type=report_type, detail=detail)
        return GenerationFailure(GenerationFailureReason.SCHEMA_VIOLATION, detail)


__all__ = [
    "DEFAULT_MODEL",
    "GenerationClient",
    "GenerationFailure",
    "GenerationRequest",
    "GenerationResult",
    "GenerationSuccess",
    "OpenAIGenerationClient",
]
