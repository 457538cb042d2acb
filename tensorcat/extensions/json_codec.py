"""
Encoder and decoder for the small JSON grammar used by tensor extension
metadata: a single object whose recognized keys each hold one of an array of
integers, an array of strings, or an array of nullable integers.
"""
# Allow classes to use self-referencing Type hints in Python 3.7.
from __future__ import annotations

import json
import operator
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from tensorcat.constants import (
    SIGNED_INT32_MAX_VALUE,
    SIGNED_INT32_MIN_VALUE,
    SIGNED_INT64_MAX_VALUE,
    SIGNED_INT64_MIN_VALUE,
)
from tensorcat.exceptions import InvalidArgumentError, MetadataDecodeError


class JsonValueKind(str, Enum):
    # array of signed 64-bit integers
    INT_ARRAY = "int_array"
    # array of strings
    STRING_ARRAY = "string_array"
    # array of signed 32-bit integers or nulls
    NULLABLE_INT_ARRAY = "nullable_int_array"

    @property
    def int_bounds(self) -> Tuple[int, int]:
        if self is JsonValueKind.NULLABLE_INT_ARRAY:
            return SIGNED_INT32_MIN_VALUE, SIGNED_INT32_MAX_VALUE
        return SIGNED_INT64_MIN_VALUE, SIGNED_INT64_MAX_VALUE


class ObjectGrammar(tuple):
    """
    Ordered set of the keys an object may hold, the kind of value stored
    under each key, and the keys that must be present. Key order is also the
    order used to encode the object.
    """

    @staticmethod
    def of(
        keys: Iterable[Tuple[str, JsonValueKind]],
        required: Optional[Iterable[str]] = None,
    ) -> ObjectGrammar:
        keys = tuple((name, JsonValueKind(kind)) for name, kind in keys)
        required = frozenset(required or ())
        unknown_required = required - {name for name, _ in keys}
        if unknown_required:
            raise InvalidArgumentError(
                f"Required keys {sorted(unknown_required)} are not declared "
                f"by the grammar."
            )
        return ObjectGrammar((keys, required))

    @property
    def keys(self) -> Tuple[Tuple[str, JsonValueKind], ...]:
        return self[0]

    @property
    def required(self) -> frozenset:
        return self[1]

    @property
    def kinds(self) -> Dict[str, JsonValueKind]:
        return dict(self.keys)


def encode_object(values: Mapping[str, Optional[List[Any]]], grammar: ObjectGrammar) -> str:
    """
    Encodes the given values as a compact JSON object. Keys are emitted in the
    order declared by the grammar and keys whose value is None are omitted.
    """
    unknown = set(values) - set(grammar.kinds)
    if unknown:
        raise InvalidArgumentError(f"Cannot encode unknown keys: {sorted(unknown)}")
    encoded = {}
    for name, kind in grammar.keys:
        value = values.get(name)
        if value is None:
            if name in grammar.required:
                raise InvalidArgumentError(f"Cannot encode without required key '{name}'")
            continue
        encoded[name] = _normalize_array(name, kind, value)
    return json.dumps(encoded, separators=(",", ":"), ensure_ascii=False)


def decode_object(text: str, grammar: ObjectGrammar) -> Dict[str, Optional[List[Any]]]:
    """
    Decodes a JSON object conforming to the given grammar. The result maps
    every key declared by the grammar to its decoded value, or to None if the
    key was absent. Raises MetadataDecodeError on any grammar violation.
    """
    try:
        document = json.loads(
            text,
            object_pairs_hook=_reject_duplicate_keys,
            parse_float=_reject_float,
            parse_constant=_reject_constant,
        )
    except MetadataDecodeError:
        raise
    except (TypeError, ValueError) as e:
        raise MetadataDecodeError(f"Malformed JSON: {e}") from e
    if not isinstance(document, dict):
        raise MetadataDecodeError(
            f"Expected a JSON object but found {type(document).__name__}"
        )
    kinds = grammar.kinds
    for key in document:
        if key not in kinds:
            raise MetadataDecodeError(f"Unknown key: {key}")
    for key in grammar.required:
        if key not in document:
            raise MetadataDecodeError(f"Missing required '{key}' field")
    return {
        name: _decode_array(name, kind, document[name]) if name in document else None
        for name, kind in grammar.keys
    }


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    result = {}
    for key, value in pairs:
        if key in result:
            raise MetadataDecodeError(f"Duplicate key: {key}")
        result[key] = value
    return result


def _reject_float(token: str) -> Any:
    raise MetadataDecodeError(f"Expected an integer but found: {token}")


def _reject_constant(token: str) -> Any:
    raise MetadataDecodeError(f"Unexpected token: {token}")


def _decode_array(name: str, kind: JsonValueKind, value: Any) -> List[Any]:
    if not isinstance(value, list):
        raise MetadataDecodeError(
            f"Expected an array for '{name}' but found {type(value).__name__}"
        )
    if kind is JsonValueKind.STRING_ARRAY:
        for item in value:
            if not isinstance(item, str):
                raise MetadataDecodeError(
                    f"Expected a string in '{name}' but found: {item!r}"
                )
        return list(value)
    lower, upper = kind.int_bounds
    decoded = []
    for item in value:
        if item is None and kind is JsonValueKind.NULLABLE_INT_ARRAY:
            decoded.append(None)
            continue
        # bool is an int subclass but true/false are not integer tokens
        if not isinstance(item, int) or isinstance(item, bool):
            raise MetadataDecodeError(
                f"Expected an integer in '{name}' but found: {json.dumps(item)}"
            )
        if not lower <= item <= upper:
            raise MetadataDecodeError(
                f"Integer {item} in '{name}' is outside of [{lower}, {upper}]"
            )
        decoded.append(item)
    return decoded


def _normalize_array(name: str, kind: JsonValueKind, value: Any) -> List[Any]:
    if isinstance(value, (str, bytes)):
        raise InvalidArgumentError(f"Expected a sequence for '{name}' but found {value!r}")
    if kind is JsonValueKind.STRING_ARRAY:
        for item in value:
            if not isinstance(item, str):
                raise InvalidArgumentError(
                    f"Expected a string in '{name}' but found: {item!r}"
                )
        return list(value)
    normalized = []
    for item in value:
        if item is None and kind is JsonValueKind.NULLABLE_INT_ARRAY:
            normalized.append(None)
            continue
        if isinstance(item, bool):
            raise InvalidArgumentError(f"Expected an integer in '{name}' but found: {item!r}")
        try:
            normalized.append(operator.index(item))
        except TypeError as e:
            raise InvalidArgumentError(
                f"Expected an integer in '{name}' but found: {item!r}"
            ) from e
    return normalized
