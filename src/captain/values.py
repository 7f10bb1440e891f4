"""Layered configuration values.

Values for a deployment request are assembled from several layers, later
layers winning over earlier ones:

1. Values files or URLs (``--values``), in the order given
2. ``--set`` expressions, in the order given

and, on upgrade, the result is merged on top of the values already stored
on the request.
"""

from __future__ import annotations

import re
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import yaml  # type: ignore[import-untyped]
from loguru import logger

from .errors import ConfigurationError

type Scalar = str | int | float | bool | None
type Value = Scalar | list[Value] | dict[str, Value]
type ValueTree = dict[str, Value]

# Largest list index accepted in a --set expression
MAX_INDEX = 65536

_INT_PATTERN = re.compile(r"^-?(0|[1-9][0-9]*)$")
_INDEX_PATTERN = re.compile(r"^(?P<key>.*?)\[(?P<index>[^\]]*)\]$")


def merge_values(base: Mapping[str, Any], override: Mapping[str, Any]) -> ValueTree:
    """Deep-merge ``override`` on top of ``base``.

    Mappings present on both sides are merged recursively; for any other
    combination the override value replaces the base value. Sequences are
    replaced wholesale. Neither input is modified.

    Args:
        base: Lower-precedence value tree
        override: Higher-precedence value tree

    Returns:
        A new value tree containing the keys of both inputs
    """
    out: ValueTree = dict(base)
    for key, value in override.items():
        current = out.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            out[key] = merge_values(current, value)
            continue
        out[key] = value
    return out


# =============================================================================
# --set expressions
# =============================================================================


def _split_unescaped(text: str, sep: str, *, respect_braces: bool = False) -> list[str]:
    """Split on ``sep`` unless it is escaped with a backslash or inside braces.

    Escapes are kept in the output so later stages can still see them.
    """
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text):
            current.append(text[i : i + 2])
            i += 2
            continue
        if respect_braces and char == "{":
            depth += 1
        elif respect_braces and char == "}" and depth:
            depth -= 1
        if char == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    parts.append("".join(current))
    return parts


def _unescape(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text)


def typed_value(raw: str) -> Scalar:
    """Convert a --set scalar to bool, None or int when it looks like one."""
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    if _INT_PATTERN.match(raw):
        return int(raw)
    return raw


def _parse_value(raw: str) -> Value:
    if raw.startswith("{") and raw.endswith("}"):
        inner = raw[1:-1]
        if not inner:
            return []
        return [typed_value(_unescape(item)) for item in _split_unescaped(inner, ",")]
    return typed_value(_unescape(raw))


def _parse_segment(segment: str, expression: str) -> tuple[str, list[int]]:
    """Split ``name[1][2]`` into ``("name", [1, 2])``."""
    indices: list[int] = []
    while not segment.endswith("\\]") and (match := _INDEX_PATTERN.match(segment)):
        raw_index = match.group("index")
        try:
            index = int(raw_index)
        except ValueError:
            raise ConfigurationError(
                "failed parsing --set data: "
                f"invalid index {raw_index!r} in {expression!r}"
            ) from None
        if index < 0 or index > MAX_INDEX:
            raise ConfigurationError(
                f"failed parsing --set data: index {index} out of range "
                f"(0..{MAX_INDEX}) in {expression!r}"
            )
        indices.insert(0, index)
        segment = match.group("key")
    if "[" in segment.replace("\\[", "") or "]" in segment.replace("\\]", ""):
        raise ConfigurationError(
            f"failed parsing --set data: malformed key {segment!r} in {expression!r}"
        )
    return _unescape(segment), indices


def _ensure_list(container: dict[str, Any] | list[Any], key: str | int) -> list[Any]:
    current = container[key] if _has(container, key) else None
    if not isinstance(current, list):
        current = []
        _assign(container, key, current)
    return current


def _ensure_dict(
    container: dict[str, Any] | list[Any], key: str | int
) -> dict[str, Any]:
    current = container[key] if _has(container, key) else None
    if not isinstance(current, dict):
        current = {}
        _assign(container, key, current)
    return current


def _has(container: dict[str, Any] | list[Any], key: str | int) -> bool:
    if isinstance(container, dict):
        return key in container
    return isinstance(key, int) and key < len(container)


def _assign(container: dict[str, Any] | list[Any], key: str | int, value: Any) -> None:
    if isinstance(container, dict):
        container[key] = value  # type: ignore[index]
        return
    if not isinstance(key, int):
        raise TypeError(f"list index must be an int, got {key!r}")
    if key >= len(container):
        container.extend([None] * (key + 1 - len(container)))
    container[key] = value


def _set_path(
    tree: dict[str, Any], path: list[tuple[str, list[int]]], value: Value
) -> None:
    container: dict[str, Any] | list[Any] = tree
    steps: list[str | int] = []
    for name, indices in path:
        steps.append(name)
        steps.extend(indices)

    for position, step in enumerate(steps):
        last = position == len(steps) - 1
        if last:
            _assign(container, step, value)
            return
        following = steps[position + 1]
        if isinstance(following, int):
            container = _ensure_list(container, step)
        else:
            container = _ensure_dict(container, step)


def parse_set(expression: str, into: dict[str, Any] | None = None) -> ValueTree:
    """Parse a ``--set`` expression into a value tree.

    Supports ``a.b=c`` nesting, ``a[0]=x`` list indices, ``a={x,y}`` lists,
    backslash escapes and comma-separated assignments.

    Args:
        expression: The raw --set argument
        into: Existing tree to apply the assignments to (modified in place)

    Returns:
        The tree the assignments were applied to

    Raises:
        ConfigurationError: If the expression is malformed
    """
    tree: dict[str, Any] = {} if into is None else into
    for assignment in _split_unescaped(expression, ",", respect_braces=True):
        if not assignment:
            continue
        key_and_value = _split_unescaped(assignment, "=")
        if len(key_and_value) < 2:
            raise ConfigurationError(
                f"failed parsing --set data: key {_unescape(assignment)!r} has no value"
            )
        raw_key = key_and_value[0]
        raw_value = "=".join(key_and_value[1:])
        if not raw_key:
            raise ConfigurationError(
                f"failed parsing --set data: empty key in {expression!r}"
            )
        path = [
            _parse_segment(segment, expression)
            for segment in _split_unescaped(raw_key, ".")
        ]
        if any(not name for name, _ in path):
            raise ConfigurationError(
                f"failed parsing --set data: empty key segment in {expression!r}"
            )
        _set_path(tree, path, _parse_value(raw_value))
    return tree


# =============================================================================
# Values files and URLs
# =============================================================================

type Fetcher = Callable[[str], bytes]


def fetch_url(url: str, timeout: float = 30.0) -> bytes:
    """Download a values document over HTTP(S)."""
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise ConfigurationError(f"failed to fetch values from {url}: {e}") from e
    return response.content


def read_source(source: str, fetch: Fetcher = fetch_url) -> bytes:
    """Read a values document from a path, ``-`` (stdin) or an HTTP(S) URL."""
    if source == "-":
        return sys.stdin.buffer.read()
    if source.startswith(("http://", "https://")):
        return fetch(source)
    try:
        return Path(source).read_bytes()
    except OSError as e:
        raise ConfigurationError(f"failed to read values file {source}: {e}") from e


def load_values_document(content: bytes, source: str) -> ValueTree:
    """Parse a YAML values document; an empty document yields ``{}``."""
    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"failed to parse {source}", details=str(e)) from e
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"failed to parse {source}: expected a mapping, got {type(loaded).__name__}"
        )
    return loaded


@dataclass
class ValueOptions:
    """User-supplied value layers for a deployment request."""

    values: list[str] = field(default_factory=list)
    value_files: list[str] = field(default_factory=list)

    def merge(self, fetch: Fetcher = fetch_url) -> ValueTree:
        """Merge all layers into a single value tree.

        Args:
            fetch: Callable used to download URL sources

        Returns:
            The merged value tree

        Raises:
            ConfigurationError: If any layer cannot be read or parsed
        """
        base: ValueTree = {}
        for source in self.value_files:
            layer = load_values_document(read_source(source, fetch), source)
            logger.debug(f"Merging {len(layer)} top-level value(s) from {source}")
            base = merge_values(base, layer)

        for expression in self.values:
            parse_set(expression, into=base)

        return base
