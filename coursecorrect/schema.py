"""Structured-output helpers.

The generative API takes an OpenAPI-subset schema in ``responseSchema``. We
derive it from the pydantic result types so the request schema and the parser
cannot drift apart.
"""

import json
import logging
import re
from functools import lru_cache
from typing import Any, Dict, Optional, Set, Tuple

from pydantic import TypeAdapter, ValidationError

from .errors import ModelOutputError


logger = logging.getLogger(__name__)

_KEPT_KEYS = ("description", "enum", "minimum", "maximum", "minItems", "maxItems")
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@lru_cache(maxsize=None)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def _deref(node: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    if "$ref" in node:
        target = defs[node["$ref"].rsplit("/", 1)[-1]]
        extra = {k: v for k, v in node.items() if k != "$ref"}
        return {**target, **extra}
    if len(node.get("allOf", [])) == 1:
        extra = {k: v for k, v in node.items() if k != "allOf"}
        return {**_deref(node["allOf"][0], defs), **extra}
    return node


def _convert(node: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    node = _deref(node, defs)

    if "anyOf" in node:
        options = [o for o in node["anyOf"] if o.get("type") != "null"]
        out = _convert(options[0], defs) if options else {"type": "string"}
        if len(options) < len(node["anyOf"]):
            out["nullable"] = True
        if "description" in node:
            out["description"] = node["description"]
        return out

    out: Dict[str, Any] = {}
    if "const" in node:
        out["type"] = "string"
        out["enum"] = [node["const"]]
    elif "type" in node:
        out["type"] = node["type"]
    elif "enum" in node:
        out["type"] = "string"

    for key in _KEPT_KEYS:
        if key in node:
            out[key] = node[key]

    if out.get("type") == "array":
        out["items"] = _convert(node.get("items", {"type": "string"}), defs)
    elif out.get("type") == "object" and "properties" in node:
        props = {name: _convert(sub, defs) for name, sub in node["properties"].items()}
        out["properties"] = props
        # Every non-nullable field is requested even when the parser tolerates its absence.
        required = [name for name, sub in props.items() if not sub.get("nullable")]
        if required:
            out["required"] = required
    return out


@lru_cache(maxsize=None)
def _schema_json(tp: Any) -> str:
    raw = _adapter(tp).json_schema(by_alias=True)
    defs = raw.get("$defs", {})
    return json.dumps(_convert(raw, defs))


def response_schema(tp: Any) -> Dict[str, Any]:
    """Return the ``responseSchema`` for a result model or ``List[model]``."""
    return json.loads(_schema_json(tp))


def _extract_json(text: str) -> Optional[str]:
    s = _FENCE.sub("", text.strip()).strip()
    if not s:
        return None
    if s[0] in "[{":
        return s
    # If the model added prose, take the outermost object or array.
    starts = [i for i in (s.find("{"), s.find("[")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    end = s.rfind("}" if s[start] == "{" else "]")
    if end <= start:
        return None
    return s[start : end + 1]


def _item_to_drop(data: Any, loc: Tuple[Any, ...]) -> Optional[Tuple[list, int]]:
    """The innermost list item on an error path, or None when the error is outside any list."""
    found = None
    node = data
    for key in loc:
        if isinstance(node, list) and isinstance(key, int) and 0 <= key < len(node):
            found = (node, key)
            node = node[key]
        elif isinstance(node, dict) and key in node:
            node = node[key]
        else:
            break
    return found


def _drop_invalid_items(data: Any, error: ValidationError) -> int:
    doomed: Dict[int, Tuple[list, Set[int]]] = {}
    for err in error.errors():
        target = _item_to_drop(data, err["loc"])
        if target is None:
            return 0
        items, index = target
        doomed.setdefault(id(items), (items, set()))[1].add(index)
    dropped = 0
    for items, indexes in doomed.values():
        for index in sorted(indexes, reverse=True):
            del items[index]
            dropped += 1
    return dropped


def parse_model_output(text: str, tp: Any) -> Any:
    """Parse model text into ``tp``.

    List items that fail validation are dropped and the rest is kept. Raises
    ModelOutputError when the text holds no JSON, or when an error is not
    confined to a list item.
    """
    candidate = _extract_json(text or "")
    if candidate is None:
        raise ModelOutputError("Model response contained no JSON", raw_text=text)
    try:
        data = json.loads(candidate)
    except ValueError as e:
        raise ModelOutputError(f"Model response is not valid JSON: {e}", raw_text=text)

    name = getattr(tp, "__name__", tp)
    while True:
        try:
            return _adapter(tp).validate_python(data)
        except ValidationError as e:
            dropped = _drop_invalid_items(data, e)
            if not dropped:
                raise ModelOutputError(
                    f"Model response does not match {name}: {e.error_count()} errors",
                    raw_text=text,
                )
            logger.warning("Dropped %d invalid item(s) from %s output", dropped, name)
