"""Tool parameter values.

A parameter bag is a JSON object: every value is one of object, array,
string, number, bool or null. Raw bags from the planner are validated once
here and are plain ``dict[str, ParamValue]`` from then on.
"""

import json
from typing import Any

from pydantic import JsonValue, TypeAdapter, ValidationError

from majordomo.errors import ParamValidationError

ParamValue = JsonValue
Params = dict[str, ParamValue]

_params_adapter: TypeAdapter[dict[str, JsonValue]] = TypeAdapter(dict[str, JsonValue])

# Keys that identify a request rather than describe it.
VOLATILE_KEYS = frozenset({"id", "timestamp", "requestId"})

_TYPE_MAP = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


def coerce_params(raw: Any) -> Params:
    """Validate a raw mapping into a parameter bag."""
    if raw is None:
        return {}
    try:
        return _params_adapter.validate_python(raw)
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ParamValidationError(f"Invalid parameters: {'; '.join(errors)}", errors) from e


def stable_params(params: Params) -> list[tuple[str, ParamValue]]:
    """Identity-bearing params, sorted by key."""
    return sorted((k, v) for k, v in params.items() if k not in VOLATILE_KEYS)


def canonical_json(value: Any) -> str:
    """Deterministic serialization used for hashing and comparisons."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def validate_against_schema(params: Params, schema: dict[str, Any] | None, path: str = "") -> list[str]:
    """
    Validate params against a JSON-schema subset.

    Supports type, required, properties, enum, minimum/maximum,
    minLength/maxLength and array items.

    Returns:
        List of error messages (empty if valid).
    """
    if not schema:
        return []
    return _validate(params, {"type": "object", **schema}, path or "params")


def _validate(val: Any, schema: dict[str, Any], path: str) -> list[str]:
    t = schema.get("type")
    errors: list[str] = []

    if t in _TYPE_MAP:
        expected = _TYPE_MAP[t]
        # bool is an int subclass; keep them apart
        if isinstance(val, bool) and t in ("integer", "number"):
            return [f"{path} should be {t}"]
        if not isinstance(val, expected):
            return [f"{path} should be {t}"]

    if "enum" in schema and val not in schema["enum"]:
        errors.append(f"{path} must be one of {schema['enum']}")
    if t in ("integer", "number"):
        if "minimum" in schema and val < schema["minimum"]:
            errors.append(f"{path} must be >= {schema['minimum']}")
        if "maximum" in schema and val > schema["maximum"]:
            errors.append(f"{path} must be <= {schema['maximum']}")
    if t == "string":
        if "minLength" in schema and len(val) < schema["minLength"]:
            errors.append(f"{path} must be at least {schema['minLength']} chars")
        if "maxLength" in schema and len(val) > schema["maxLength"]:
            errors.append(f"{path} must be at most {schema['maxLength']} chars")
    if t == "object":
        props = schema.get("properties", {})
        for k in schema.get("required", []):
            if k not in val:
                errors.append(f"missing required {path}.{k}")
        for k, v in val.items():
            if k in props:
                errors.extend(_validate(v, props[k], f"{path}.{k}"))
    if t == "array" and "items" in schema:
        for i, item in enumerate(val):
            errors.extend(_validate(item, schema["items"], f"{path}[{i}]"))
    return errors
