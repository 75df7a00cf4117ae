# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Variable Resolver

Resolves {{path}} placeholders against an execution context.

Path grammar:
    node_id.field.nested          dotted mapping lookups
    node_id.items[0].name         numeric indexes into sequences
    trigger_data.comment_id       the original event payload
    button_data.button_id         the click that resumed the execution
    parents.agent.response        most recently executed node of a type
                                  that has the field

Missing keys resolve to None (an empty string inside a template).
"""

import json
import re
from typing import Any, Dict, List, Mapping, Union

from flowrunner.context import ExecutionContext


PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
SINGLE_PLACEHOLDER_PATTERN = re.compile(r"^\s*\{\{\s*([^{}]+?)\s*\}\}\s*$")
PART_PATTERN = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
INDEX_PATTERN = re.compile(r"\[(\d+)\]")

PARENTS_ROOT = "parents"

ContextLike = Union[ExecutionContext, Mapping[str, Any]]


def _split_path(path: str) -> List[Union[str, int]]:
    """Split 'a.b[0].c' into ['a', 'b', 0, 'c']."""
    tokens: List[Union[str, int]] = []
    for part in path.strip().split("."):
        match = PART_PATTERN.match(part)
        if not match:
            tokens.append(part)
            continue
        key, indexes = match.groups()
        if key:
            tokens.append(key)
        tokens.extend(int(i) for i in INDEX_PATTERN.findall(indexes))
    return tokens


def _step(current: Any, token: Union[str, int]) -> Any:
    if isinstance(token, int):
        if isinstance(current, (list, tuple)) and token < len(current):
            return current[token]
        if isinstance(current, Mapping):
            return current.get(token, current.get(str(token)))
        return None
    if isinstance(current, Mapping):
        return current.get(token)
    return None


def get_path(value: Any, path: Union[str, List[Union[str, int]]]) -> Any:
    """Walk a path inside an arbitrary value; None on any miss."""
    tokens = _split_path(path) if isinstance(path, str) else path
    current = value
    for token in tokens:
        current = _step(current, token)
        if current is None:
            return None
    return current


def _node_types(context: ContextLike) -> Dict[str, str]:
    if isinstance(context, ExecutionContext):
        return context.node_types
    return context.get("_node_types") or {}


def _lookup_root(context: ContextLike, key: str) -> Any:
    if isinstance(context, ExecutionContext):
        if key == "trigger_data":
            return context.trigger_data
        if key == "button_data":
            return context.button_data
        if key == "_node_types":
            return context.node_types
        return context.outputs.get(key)
    return context.get(key)


def resolve_parents(node_type: str, field_path: str, context: ContextLike) -> Any:
    """
    Grouped lookup across every executed node of a type.

    Nodes are visited most recently executed first. A literal key equal to
    field_path wins (button ids may contain dots); otherwise field_path is
    walked as a path. The first non-None value is returned.
    """
    node_ids = [nid for nid, ntype in _node_types(context).items() if ntype == node_type]
    for node_id in reversed(node_ids):
        output = _lookup_root(context, node_id)
        if not isinstance(output, Mapping):
            continue
        direct = output.get(field_path)
        if direct is not None:
            return direct
        nested = get_path(output, field_path)
        if nested is not None:
            return nested
    return None


def resolve_path(path: str, context: ContextLike) -> Any:
    """Resolve a single path (without braces) against the context."""
    path = path.strip()
    if not path:
        return None

    if path.startswith(PARENTS_ROOT + "."):
        remainder = path[len(PARENTS_ROOT) + 1:]
        node_type, _, field_path = remainder.partition(".")
        if node_type and field_path:
            return resolve_parents(node_type, field_path, context)
        return None

    tokens = _split_path(path)
    if not tokens or isinstance(tokens[0], int):
        return None
    root = _lookup_root(context, tokens[0])
    if root is None:
        return None
    return get_path(root, tokens[1:])


def stringify(value: Any) -> str:
    """Template text for a resolved value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def resolve_template(template: Any, context: ContextLike) -> str:
    """
    Substitute every {{path}} placeholder in a template string.

    Non-string templates are stringified as-is.
    """
    if not isinstance(template, str):
        return stringify(template)
    if "{{" not in template:
        return template
    return PLACEHOLDER_PATTERN.sub(
        lambda match: stringify(resolve_path(match.group(1), context)),
        template
    )


def resolve_value(expression: Any, context: ContextLike) -> Any:
    """
    Resolve an expression to a value.

    - "{{path}}" alone returns the raw value (dicts stay dicts)
    - text containing placeholders returns the interpolated string
    - a bare "node.field" path is looked up directly
    """
    if not isinstance(expression, str):
        return expression

    single = SINGLE_PLACEHOLDER_PATTERN.match(expression)
    if single:
        return resolve_path(single.group(1), context)
    if "{{" in expression:
        return resolve_template(expression, context)
    return resolve_path(expression, context)


def resolve_structure(value: Any, context: ContextLike) -> Any:
    """
    Recursively resolve templates in nested inputs.

    String leaves and string keys are interpolated; everything else is
    returned unchanged.
    """
    if isinstance(value, str):
        return resolve_template(value, context)
    if isinstance(value, Mapping):
        resolved: Dict[Any, Any] = {}
        for key, item in value.items():
            new_key = resolve_template(key, context) if isinstance(key, str) else key
            resolved[new_key] = resolve_structure(item, context)
        return resolved
    if isinstance(value, (list, tuple)):
        return [resolve_structure(item, context) for item in value]
    return value
