"""Model-backed column suggestions via the OpenAI Responses API.

The model is an unreliable oracle: its answer is validated with Pydantic,
out-of-range columns are dropped, and any failure (missing API key,
transport error, unparsable or invalid output) degrades to
:class:`~ledger_import.field_mapping.Unavailable` with a warning. Exactly one
request is made per call; there are no automatic retries.
"""

from __future__ import annotations

import json
import os
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Literal

from openai import OpenAI
from openai.types.responses import ResponseTextConfigParam
from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .field_mapping import Suggested, SuggestionResult, Unavailable, suggest_heuristically
from .logging_setup import get_logger
from .models import FIELD_NAMES, DecimalSeparator, FieldConfidence, FieldMapping, FieldSuggestion
from .settings import DEFAULT_SUGGEST_MODEL

_logger = get_logger("ledger_import.suggestion")

MAX_SAMPLE_ROWS = 10

_INSTRUCTIONS = (
    "You map the columns of a CSV export from a Swedish bank to transaction "
    "fields. Return, for each field, the 0-based column index (or null when no "
    "column fits) and a confidence between 0 and 1.\n"
    "Fields:\n"
    "- accounting_date: Bokföringsdag / Bokföringsdatum / Transaktionsdatum / Datum\n"
    "- amount: Insättning/Uttag / Belopp / Summa / Amount (negative for withdrawals)\n"
    "- reference: Referens / Text / Beskrivning / Meddelande / Memo\n"
    "- booked_balance: Bokfört saldo / Saldo / Balance\n"
    "Dates look like YYYY-MM-DD, YYYYMMDD or DD/MM/YYYY. Amounts may use a "
    "decimal comma and space thousand separators, e.g. -699,00 or 50 881,00.\n"
    "Confidence: 0.9-1.0 exact header match; 0.7-0.9 similar header or clear "
    "value pattern; 0.5-0.7 value pattern only; below 0.5 a guess."
)

# ---------------------------------------------------------------------------
# Response schema and validation
# ---------------------------------------------------------------------------


def build_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    """Strict JSON Schema: one ``{column_index, confidence}`` object per field."""

    field_schema = {
        "type": "object",
        "properties": {
            "column_index": {"type": ["integer", "null"]},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        },
        "required": ["column_index", "confidence"],
        "additionalProperties": False,
    }
    result: ResponseFormatTextJSONSchemaConfigParam = {
        "type": "json_schema",
        "name": "bank_csv_field_mapping",
        "schema": {
            "type": "object",
            "properties": {name: field_schema for name in FIELD_NAMES},
            "required": list(FIELD_NAMES),
            "additionalProperties": False,
        },
        "strict": True,
    }
    return result


class _FieldGuess(BaseModel):
    model_config = ConfigDict(extra="forbid")

    column_index: int | None
    confidence: float

    @field_validator("confidence")
    @classmethod
    def _confidence_in_range(cls, v: float) -> float:
        if 0.0 <= float(v) <= 1.0:
            return float(v)
        raise ValueError("confidence must be in [0,1]")


class _MappingBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    accounting_date: _FieldGuess
    amount: _FieldGuess
    reference: _FieldGuess
    booked_balance: _FieldGuess


def parse_suggestion(body: Mapping[str, Any], *, column_count: int) -> FieldSuggestion:
    """Validate a decoded model answer into a :class:`FieldSuggestion`.

    Raises ``pydantic.ValidationError`` on shape errors. Column indices outside
    ``[0, column_count)`` are dropped together with their confidence.
    """

    parsed = _MappingBody.model_validate(body)
    columns: dict[str, int | None] = {}
    confidence: dict[str, float] = {}
    for name in FIELD_NAMES:
        guess: _FieldGuess = getattr(parsed, name)
        col = guess.column_index
        if col is None or not 0 <= col < column_count:
            columns[name] = None
            confidence[name] = 0.0
        else:
            columns[name] = col
            confidence[name] = guess.confidence
    return FieldSuggestion(
        mapping=FieldMapping(**columns),
        confidence=FieldConfidence(**confidence),
        source="openai",
    )


def build_user_content(headers: Sequence[str], sample_rows: Sequence[Sequence[str]]) -> str:
    payload = {
        "headers": [{"index": i, "name": h} for i, h in enumerate(headers)],
        "sample_rows": [list(r) for r in sample_rows[:MAX_SAMPLE_ROWS]],
    }
    return json.dumps(payload, ensure_ascii=False)


def _create_client() -> OpenAI:
    return OpenAI()


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def suggest_with_openai(
    headers: Sequence[str],
    sample_rows: Sequence[Sequence[str]],
    *,
    client: Any | None = None,
    model: str = DEFAULT_SUGGEST_MODEL,
) -> SuggestionResult:
    """Ask the model for a mapping; never raises."""

    if not headers:
        return Unavailable("file has no header row")
    if client is None:
        if not os.getenv("OPENAI_API_KEY"):
            _logger.warning("suggest_openai:unavailable reason=missing_api_key")
            return Unavailable("OPENAI_API_KEY is not set")
        try:
            client = _create_client()
        except Exception as e:  # noqa: BLE001 - degrade to manual mapping
            _logger.warning("suggest_openai:unavailable reason=client_init error=%s", e)
            return Unavailable(f"could not create OpenAI client: {e}")

    t0 = time.perf_counter()
    try:
        resp = client.responses.create(
            model=model,
            instructions=_INSTRUCTIONS,
            input=build_user_content(headers, sample_rows),
            text=ResponseTextConfigParam(format=build_response_format()),
        )
        text = getattr(resp, "output_text", None)
        if not text or not isinstance(text, str):
            raise ValueError("Unexpected Responses API shape; unable to locate text output")
        body = json.loads(text)
        if not isinstance(body, Mapping):
            raise ValueError("Invalid response: expected a JSON object at top level")
        suggestion = parse_suggestion(body, column_count=len(headers))
    except (ValidationError, ValueError) as e:
        _logger.warning("suggest_openai:unavailable reason=invalid_output error=%s", e)
        return Unavailable(f"invalid suggestion output: {e}")
    except Exception as e:  # noqa: BLE001 - transport failures fall back to manual mapping
        _logger.warning("suggest_openai:unavailable reason=request_failed error=%s", e)
        return Unavailable(f"suggestion request failed: {e}")

    _logger.info(
        "suggest_openai:done columns=%d sample_rows=%d latency_ms=%.2f",
        len(headers),
        min(len(sample_rows), MAX_SAMPLE_ROWS),
        (time.perf_counter() - t0) * 1000.0,
    )
    return Suggested(suggestion)


type SuggestMode = Literal["heuristic", "openai", "none"]
type Suggester = Callable[[Sequence[str], Sequence[Sequence[str]]], SuggestionResult]


def no_suggestion(
    headers: Sequence[str], sample_rows: Sequence[Sequence[str]]
) -> SuggestionResult:
    return Unavailable("suggestions disabled")


def get_suggester(
    mode: SuggestMode,
    *,
    decimal_separator: DecimalSeparator = ",",
    model: str = DEFAULT_SUGGEST_MODEL,
) -> Suggester:
    """Return the suggestion function for ``mode``."""

    if mode == "heuristic":
        return lambda headers, rows: suggest_heuristically(
            headers, rows, decimal_separator=decimal_separator
        )
    if mode == "openai":
        return lambda headers, rows: suggest_with_openai(headers, rows, model=model)
    if mode == "none":
        return no_suggestion
    raise ValueError(f"Unsupported suggest mode: {mode!r}. Allowed: heuristic, openai, none")


__all__ = [
    "MAX_SAMPLE_ROWS",
    "build_response_format",
    "build_user_content",
    "parse_suggestion",
    "suggest_with_openai",
    "SuggestMode",
    "Suggester",
    "no_suggestion",
    "get_suggester",
]
