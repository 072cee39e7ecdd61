"""Reduce free-form model output to a single, well-typed formatting result.

The model is asked for JSON but may wrap it in a Markdown fence, surround it
with prose, return one object or an array of objects, drop fields, or answer
in plain text. ``normalize`` walks an ordered chain of strategies (strict
parse, embedded array or object recovery, heuristic classification) and
always returns a ``NormalizedResult``; malformed output becomes data, never an
exception.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum

import json_repair

logger = logging.getLogger(__name__)

MAX_CHANGES = 2
PARSE_FAILURE_NOTE = "could not parse response format"

_ERROR_MARKERS = ("无法识别", "无法解析", "错误", "error")
_FENCE_OPEN_RE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?[ \t]*```$")
# Longer candidates skip the json_repair pass.
_REPAIR_MAX_CHARS = 16_384


class Status(str, Enum):
    success = "success"
    warning = "warning"
    error = "error"

    @classmethod
    def coerce(cls, value: object) -> "Status":
        if isinstance(value, Status):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for status in cls:
                if status.value == key:
                    return status
        return cls.success


_SEVERITY = {Status.success: 0, Status.warning: 1, Status.error: 2}


@dataclass(frozen=True)
class CitationRecord:
    result: str = ""
    status: Status = Status.success
    changes: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: object) -> "CitationRecord | None":
        if isinstance(payload, str):
            return cls(result=payload)
        if not isinstance(payload, dict):
            return None
        return cls(
            result=_coerce_result(payload.get("result")),
            status=Status.coerce(payload.get("status")),
            changes=_coerce_changes(payload.get("changes")),
        )

    @property
    def has_result(self) -> bool:
        return bool(self.result.strip())


@dataclass(frozen=True)
class NormalizedResult:
    formatted: str
    status: Status
    changes: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "formatted": self.formatted,
            "status": self.status.value,
            "changes": list(self.changes),
        }


# Parse boundary: exactly one of these comes out of ``parse_model_text``.


@dataclass(frozen=True)
class RecordBatch:
    records: list[CitationRecord] = field(default_factory=list)


@dataclass(frozen=True)
class SingleRecord:
    record: CitationRecord


@dataclass(frozen=True)
class Unparseable:
    pass


ParsedModelText = RecordBatch | SingleRecord | Unparseable


def _coerce_result(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _coerce_changes(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items: list[object] = [value]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        return ()
    out: list[str] = []
    for item in items:
        if item is None or isinstance(item, (dict, list)):
            continue
        text = str(item).strip()
        if text:
            out.append(text)
    return tuple(out)


def _dedupe_changes(changes: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for change in changes:
        if change in seen:
            continue
        seen.add(change)
        out.append(change)
        if len(out) >= MAX_CHANGES:
            break
    return tuple(out)


def strip_code_fence(text: str) -> str:
    stripped = (text or "").strip()
    if not stripped.startswith("```"):
        return stripped
    inner = _FENCE_OPEN_RE.sub("", stripped, count=1)
    inner = _FENCE_CLOSE_RE.sub("", inner, count=1)
    return inner.strip()


def _loads(text: str) -> tuple[bool, object]:
    try:
        return True, json.loads(text)
    except RecursionError:
        return False, None
    except ValueError:
        pass
    # Models sometimes put raw newlines inside string values.
    try:
        return True, json.loads(text, strict=False)
    except (ValueError, RecursionError):
        return False, None


def parse_model_text(text: str) -> ParsedModelText:
    ok, value = _loads(text)
    if not ok:
        return Unparseable()
    if isinstance(value, list):
        records = [rec for rec in (CitationRecord.from_payload(item) for item in value) if rec is not None]
        return RecordBatch(records=records)
    if isinstance(value, dict):
        record = CitationRecord.from_payload(value)
        if record is not None:
            return SingleRecord(record=record)
    # Valid JSON that is neither an object nor an array carries no record.
    return SingleRecord(record=CitationRecord())


def aggregate(records: list[CitationRecord]) -> NormalizedResult:
    status = Status.success
    changes: list[str] = []
    results: list[str] = []
    for record in records:
        if _SEVERITY[record.status] > _SEVERITY[status]:
            status = record.status
        changes.extend(record.changes)
        if record.has_result:
            results.append(record.result)
    return NormalizedResult(
        formatted="\n\n".join(results),
        status=status,
        changes=_dedupe_changes(changes),
    )


def _from_record(record: CitationRecord) -> NormalizedResult:
    return NormalizedResult(
        formatted=record.result,
        status=record.status,
        changes=_dedupe_changes(record.changes),
    )


def _balanced_object(text: str) -> str | None:
    in_string = False
    escaped = False
    depth = 0
    start: int | None = None
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
            continue
        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start is not None:
                return text[start : i + 1]
    return None


def _embedded_array_start(text: str) -> int | None:
    # Array-shaped: a "[" before the first "{" and a "]" after the last "}".
    first_brace = text.find("{")
    if first_brace == -1 or text.rfind("]") < text.rfind("}"):
        return None
    first_bracket = text.find("[", 0, first_brace)
    return first_bracket if first_bracket != -1 else None


def _repair(candidate: str) -> object:
    if len(candidate) > _REPAIR_MAX_CHARS:
        return None
    try:
        return json_repair.loads(candidate)
    except Exception:
        logger.debug("json_repair could not recover embedded JSON", exc_info=True)
        return None


def _records_from_list(value: object) -> RecordBatch | None:
    if not isinstance(value, list):
        return None
    records = [rec for rec in (CitationRecord.from_payload(item) for item in value) if rec is not None]
    return RecordBatch(records=records) if records else None


def recover_embedded_array(text: str) -> RecordBatch | None:
    text = text or ""
    start = _embedded_array_start(text)
    end = text.rfind("]")
    if start is None or end <= start:
        return None
    # A bracketed label such as "[1]" may precede the array itself.
    nearest = text.rfind("[", 0, text.find("{"))
    candidates = [text[nearest : end + 1]]
    if start < nearest:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        ok, value = _loads(candidate)
        batch = _records_from_list(value) if ok else None
        if batch is not None:
            return batch
    for candidate in candidates:
        batch = _records_from_list(_repair(candidate))
        if batch is not None:
            return batch
    return None


def recover_embedded_object(text: str) -> CitationRecord | None:
    text = text or ""
    if _embedded_array_start(text) is not None:
        return None
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last <= first:
        return None
    candidate = text[first : last + 1]

    ok, value = _loads(candidate)
    if not ok:
        # Only repair a span that is one object; several objects would lose records.
        if _balanced_object(candidate) != candidate:
            return None
        value = _repair(candidate)
    if isinstance(value, dict):
        record = CitationRecord.from_payload(value)
        if record is not None and record.has_result:
            return record
    return None


def classify_text(text: str) -> NormalizedResult:
    raw = text or ""
    lowered = raw.lower()
    is_error = not raw.strip() or any(marker in lowered for marker in _ERROR_MARKERS)
    if is_error:
        return NormalizedResult(formatted=raw, status=Status.error, changes=(PARSE_FAILURE_NOTE,))
    return NormalizedResult(formatted=raw, status=Status.success, changes=())


def normalize(raw_text: str) -> NormalizedResult:
    if not isinstance(raw_text, str):
        raw_text = "" if raw_text is None else str(raw_text)

    text = strip_code_fence(raw_text)
    parsed = parse_model_text(text)

    if isinstance(parsed, RecordBatch):
        return aggregate(parsed.records)
    if isinstance(parsed, SingleRecord):
        if parsed.record.has_result:
            return _from_record(parsed.record)
        # Structured but without a usable result: pass the text through as-is.
        return NormalizedResult(formatted=text, status=Status.success, changes=())

    batch = recover_embedded_array(raw_text)
    if batch is not None:
        return aggregate(batch.records)
    recovered = recover_embedded_object(raw_text)
    if recovered is not None:
        return _from_record(recovered)

    logger.warning("Model response is not JSON; falling back to text classification (%d chars).", len(raw_text))
    return classify_text(raw_text)
