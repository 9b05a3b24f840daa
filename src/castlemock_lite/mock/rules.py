"""
CastleMock Lite Match Rules

Conditional rules attached to responses, as a closed set of variants:

- RegexRule: pattern searched in the raw request body
- JsonPathRule: ``path``, ``path == value`` or ``path != value`` on the JSON body
- BodySubsetRule: JSON document that must be a subset of the request body
- HeaderEqualsRule: ``{"key": ..., "value": ...}`` request header check
- NoRule: never matches

Rule expressions come from user input, so every parse or evaluation failure
is a non-match rather than an error. Comparisons follow the loose JavaScript
semantics the rule language was designed around (``"0" == 0`` holds,
missing and null are interchangeable for ``==``).
"""

import json
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Pattern

from ..catalog.models import Response, ResponseStrategy


class _Undefined:
    """Marker for a path that does not exist (distinct from JSON null)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'UNDEFINED'

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()

_ARRAY_INDEX_RE = re.compile(r'\[(\d+)\]')
_DECIMAL_RE = re.compile(r'[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')
_RADIX_PREFIXES = {'0x': 16, '0o': 8, '0b': 2}


# --- JavaScript value semantics ---

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_nullish(value: Any) -> bool:
    return value is None or value is UNDEFINED


def _is_object(value: Any) -> bool:
    return isinstance(value, (dict, list))


def js_truthy(value: Any) -> bool:
    """JavaScript truthiness: empty containers are truthy, 0 and '' are not."""
    if _is_nullish(value):
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ''
    return True


def js_to_number(text: str) -> float:
    """Convert a string the way JavaScript's ``Number()`` does (NaN on failure)."""
    stripped = text.strip()
    if stripped == '':
        return 0
    if _DECIMAL_RE.fullmatch(stripped):
        number = float(stripped)
        return int(number) if number.is_integer() and abs(number) < 2 ** 53 else number
    prefix = stripped[:2].lower()
    if prefix in _RADIX_PREFIXES and len(stripped) > 2:
        try:
            return int(stripped[2:], _RADIX_PREFIXES[prefix])
        except ValueError:
            return math.nan
    if stripped in ('Infinity', '+Infinity'):
        return math.inf
    if stripped == '-Infinity':
        return -math.inf
    return math.nan


def _js_to_string(value: Any) -> str:
    if _is_nullish(value):
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if _is_number(value):
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, list):
        return ','.join(_js_to_string(item) for item in value)
    if isinstance(value, dict):
        return '[object Object]'
    return str(value)


def _to_primitive(value: Any) -> Any:
    return _js_to_string(value) if _is_object(value) else value


def js_loose_equals(left: Any, right: Any) -> bool:
    """JavaScript ``==``."""
    if _is_nullish(left) or _is_nullish(right):
        return _is_nullish(left) and _is_nullish(right)

    if _is_object(left) and _is_object(right):
        return left is right

    if isinstance(left, bool):
        left = 1 if left else 0
    if isinstance(right, bool):
        right = 1 if right else 0

    if _is_object(left):
        return js_loose_equals(_to_primitive(left), right)
    if _is_object(right):
        return js_loose_equals(left, _to_primitive(right))

    if _is_number(left) and _is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if _is_number(left) and isinstance(right, str):
        return left == js_to_number(right)
    if isinstance(left, str) and _is_number(right):
        return js_to_number(left) == right
    return left == right


def js_strict_equals(left: Any, right: Any) -> bool:
    """JavaScript ``===`` for decoded JSON values."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if left is None or right is None:
        return left is None and right is None
    if left is UNDEFINED or right is UNDEFINED:
        return left is right
    return left is right


def _js_index(container: Any, key: str) -> Any:
    """``container[key]`` with JavaScript property lookup rules."""
    if isinstance(container, dict):
        return container.get(key, UNDEFINED)
    if isinstance(container, (list, str)):
        if key == 'length':
            return len(container)
        if key.isdigit() and (key == '0' or not key.startswith('0')) and int(key) < len(container):
            return container[int(key)]
    return UNDEFINED


def get_object_value(document: Any, path: str) -> Any:
    """
    Read a dotted path (``$.items[0].id`` / ``items.0.id``) from a document.

    Traversal yields UNDEFINED as soon as an intermediate value is falsy.
    """
    if not path:
        return UNDEFINED
    clean = path[2:] if path.startswith('$.') else path
    normalized = _ARRAY_INDEX_RE.sub(r'.\1', clean)

    current = document
    for segment in normalized.split('.'):
        current = _js_index(current, segment) if js_truthy(current) else UNDEFINED
    return current


def is_subset(subset: Any, actual: Any) -> bool:
    """
    Check that every key/position present in subset matches in actual.

    Arrays are compared index by index, so ``[{"id": 1}]`` only matches when
    the first actual element has id 1. Extra object keys are ignored.
    """
    if js_strict_equals(subset, actual):
        return True
    if isinstance(subset, datetime) and isinstance(actual, datetime):
        return subset.timestamp() == actual.timestamp()
    if not js_truthy(subset) or not js_truthy(actual) or not _is_object(subset) or not _is_object(actual):
        return js_strict_equals(subset, actual)

    if isinstance(subset, list):
        if not isinstance(actual, list):
            return False
        for index, item in enumerate(subset):
            other = actual[index] if index < len(actual) else UNDEFINED
            if not is_subset(item, other):
                return False
        return True

    return all(is_subset(value, _js_index(actual, key)) for key, value in subset.items())


def coerce_expected(text: str) -> Any:
    """Interpret the right-hand side of a ``==``/``!=`` expression."""
    if text.startswith("'") or text.startswith('"'):
        return re.sub(r'[\'"]', '', text)
    if text == 'true':
        return True
    if text == 'false':
        return False
    if text == 'null':
        return None
    number = js_to_number(text)
    if isinstance(number, float) and math.isnan(number):
        return text
    return number


# --- Rule variants ---

class MatchRule:
    """Base class for response match rules."""

    def matches(self, body: Optional[str], headers: Optional[Dict[str, str]]) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class NoRule(MatchRule):
    """Placeholder for responses without a usable rule."""

    reason: str = ""

    def matches(self, body, headers) -> bool:
        return False


@dataclass(frozen=True)
class RegexRule(MatchRule):
    pattern: Pattern

    @classmethod
    def parse(cls, expression: str) -> MatchRule:
        try:
            return cls(pattern=re.compile(expression))
        except re.error as e:
            return NoRule(reason=f"invalid regex: {e}")

    def matches(self, body, headers) -> bool:
        if body is None:
            return False
        return self.pattern.search(body) is not None


@dataclass(frozen=True)
class JsonPathRule(MatchRule):
    """``path`` (existence), ``path == value`` or ``path != value``."""

    path: str
    operator: str  # exists / == / !=
    expected: Any = None

    @classmethod
    def parse(cls, expression: str) -> 'JsonPathRule':
        if '!=' in expression:
            operator = '!='
        elif '==' in expression:
            operator = '=='
        else:
            return cls(path=expression.strip(), operator='exists')

        split_at = expression.index(operator)
        path = expression[:split_at].strip()
        expected = coerce_expected(expression[split_at + len(operator):].strip())
        return cls(path=path, operator=operator, expected=expected)

    def matches(self, body, headers) -> bool:
        if body is None:
            return False
        try:
            document = json.loads(body)
        except (json.JSONDecodeError, TypeError, ValueError):
            return False

        actual = get_object_value(document, self.path)
        if self.operator == 'exists':
            return not _is_nullish(actual)
        if self.operator == '==':
            return js_loose_equals(actual, self.expected)
        return not js_loose_equals(actual, self.expected)


@dataclass(frozen=True)
class BodySubsetRule(MatchRule):
    expected: Any

    @classmethod
    def parse(cls, expression: str) -> MatchRule:
        try:
            return cls(expected=json.loads(expression))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            return NoRule(reason=f"invalid JSON condition: {e}")

    def matches(self, body, headers) -> bool:
        if body is None:
            return False
        try:
            actual = json.loads(body)
        except (json.JSONDecodeError, TypeError, ValueError):
            return False
        return is_subset(self.expected, actual)


@dataclass(frozen=True)
class HeaderEqualsRule(MatchRule):
    """Header named ``key`` (case-insensitive) must equal ``value`` exactly."""

    key: str
    value: Any

    @classmethod
    def parse(cls, expression: str) -> MatchRule:
        try:
            data = json.loads(expression)
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            return NoRule(reason=f"invalid header condition: {e}")

        if not isinstance(data, dict):
            return NoRule(reason="header condition is not an object")
        key = data.get('key')
        if not js_truthy(key) or not isinstance(key, str):
            return NoRule(reason="header condition has no key")
        if 'value' not in data:
            return NoRule(reason="header condition has no value")
        return cls(key=key, value=data['value'])

    def matches(self, body, headers) -> bool:
        if headers is None:
            return False
        wanted = self.key.lower()
        for name, value in headers.items():
            if str(name).lower() == wanted:
                return js_strict_equals(value, self.value)
        return False


def rule_for(response: Response, strategy: ResponseStrategy) -> MatchRule:
    """
    Build the rule a response contributes under an endpoint's strategy.

    HEADER_MATCH reads every response's expression as a header condition;
    QUERY_MATCH dispatches on the response's ``match_type``.
    """
    expression = response.match_expression
    if not expression:
        return NoRule(reason="no expression")

    if strategy == ResponseStrategy.HEADER_MATCH:
        return HeaderEqualsRule.parse(expression)

    if strategy == ResponseStrategy.QUERY_MATCH:
        if response.match_type == 'regex':
            return RegexRule.parse(expression)
        if response.match_type == 'json':
            return JsonPathRule.parse(expression)
        if response.match_type == 'body_json':
            return BodySubsetRule.parse(expression)
        return NoRule(reason=f"unsupported match type: {response.match_type}")

    return NoRule(reason=f"strategy {strategy.value} does not use rules")
