# /armelle/workflows/templates.py

"""
Typed template values for step parameters and prompt text.

A step parameter is either a literal or a reference to a context variable.
Authors write references as the exact string "{{dotted.path}}"; anything else
is kept as a literal. References pass the referenced object through untouched,
so actions receive real dicts and lists instead of stringified copies.

Text interpolation (for prompts and labels) only inserts scalar values.
Placeholders that point at objects, lists or missing variables are left in
place so a broken template is visible instead of producing "[object Object]".
"""

import copy
import re
from typing import Annotated, Any, Dict, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

_VARIABLE_REF = re.compile(r"^\{\{\s*(\w+(?:\.\w+)*)\s*\}\}$")
_PLACEHOLDER = re.compile(r"\{\{\s*(\w+(?:\.\w+)*)\s*\}\}")


class _Missing:
    """Marker for a path that does not resolve to a value."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


class LiteralValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["literal"] = "literal"
    value: Any = None


class VariableRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["variable"] = "variable"
    path: str


TemplateValue = Annotated[Union[LiteralValue, VariableRef], Field(discriminator="type")]


def lookup_path(data: Any, path: str) -> Any:
    """
    Resolve a dotted path against nested dicts and lists.

    Numeric segments index into lists. Returns MISSING instead of raising
    when any segment does not resolve.
    """
    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def parse_template_value(raw: Any) -> Any:
    """Turn an author-supplied parameter into a LiteralValue or VariableRef."""
    if isinstance(raw, (LiteralValue, VariableRef)):
        return raw
    # Already-serialized values (e.g. a definition loaded back from JSON)
    if isinstance(raw, dict) and raw.get("type") in ("literal", "variable") and set(raw) <= {"type", "value", "path"}:
        return raw
    if isinstance(raw, str):
        match = _VARIABLE_REF.match(raw.strip())
        if match:
            return VariableRef(path=match.group(1))
    return LiteralValue(value=raw)


def render_value(value: Union[LiteralValue, VariableRef], variables: Mapping[str, Any]) -> Any:
    if isinstance(value, VariableRef):
        resolved = lookup_path(variables, value.path)
        return None if resolved is MISSING else copy.deepcopy(resolved)
    return copy.deepcopy(value.value)


def render_params(params: Mapping[str, Any], variables: Mapping[str, Any]) -> Dict[str, Any]:
    """Render every template value of a step's params against the context variables."""
    return {name: render_value(value, variables) for name, value in params.items()}


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def interpolate(text: str, params: Mapping[str, Any]) -> str:
    """Replace {{path}} placeholders with scalar values from params."""
    if not text or "{{" not in text:
        return text

    def _replace(match: "re.Match[str]") -> str:
        value = lookup_path(params, match.group(1))
        if value is MISSING or not _is_scalar(value):
            return match.group(0)
        return str(value)

    return _PLACEHOLDER.sub(_replace, text)
