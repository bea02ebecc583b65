# src/intunegraph/core/body.py
from __future__ import annotations
import json
from dataclasses import dataclass
from typing import Any, Union

DEFAULT_MAX_DEPTH = 20
MIN_MAX_DEPTH = 10


class BodyEncodingError(ValueError):
    pass


@dataclass(frozen=True)
class RawJson:
    """Text that already parses as JSON; sent unchanged."""
    text: str

@dataclass(frozen=True)
class ScalarString:
    """Plain text; sent as a JSON string literal."""
    text: str

@dataclass(frozen=True)
class Structured:
    """Dicts, lists, numbers... serialized by us."""
    value: Any

@dataclass(frozen=True)
class Binary:
    """Pre-encoded payload (certificates, blobs) sent byte-for-byte."""
    data: bytes


Body = Union[RawJson, ScalarString, Structured, Binary]


def classify_body(value: Any) -> Body:
    if isinstance(value, (RawJson, ScalarString, Structured, Binary)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return Binary(bytes(value))
    if isinstance(value, str):
        try:
            json.loads(value)
        except ValueError:
            return ScalarString(value)
        return RawJson(value)
    return Structured(value)


def encode_body(body: Body, max_depth: int = DEFAULT_MAX_DEPTH) -> bytes:
    if isinstance(body, Binary):
        return body.data
    if isinstance(body, RawJson):
        return body.text.encode("utf-8")
    if isinstance(body, ScalarString):
        return json.dumps(body.text, ensure_ascii=False).encode("utf-8")
    if isinstance(body, Structured):
        if max_depth < MIN_MAX_DEPTH:
            raise BodyEncodingError(f"max_depth must be at least {MIN_MAX_DEPTH}")
        depth = nesting_depth(body.value, max_depth)
        if depth > max_depth:
            raise BodyEncodingError(f"body nests at least {depth} levels deep, limit is {max_depth}")
        try:
            return json.dumps(body.value, ensure_ascii=False, default=_fallback).encode("utf-8")
        except (TypeError, ValueError) as ex:
            raise BodyEncodingError(str(ex)) from ex
    raise TypeError(f"unsupported body type: {type(body).__name__}")


def nesting_depth(value: Any, limit: int = DEFAULT_MAX_DEPTH) -> int:
    """
    Container levels: scalars are 0, {} / [] are 1. Stops once `limit` is
    passed, so self-referencing bodies terminate.
    """
    stack = [(value, 1)]
    deepest = 0
    while stack:
        cur, level = stack.pop()
        if level > limit and isinstance(cur, (dict, list, tuple)):
            return level
        if isinstance(cur, dict):
            deepest = max(deepest, level)
            stack.extend((v, level + 1) for v in cur.values())
        elif isinstance(cur, (list, tuple)):
            deepest = max(deepest, level)
            stack.extend((v, level + 1) for v in cur)
    return deepest


def _fallback(obj: Any) -> Any:
    # datetimes, enums, sets: serialize the way Graph expects them as text
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if hasattr(obj, "value") and not callable(obj.value):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
