"""JSON envelope codec.

Wraps :mod:`json` so every caller gets the same failure mode (``ParseError``)
and the same path-based, defaulting field access on the decoded object.
"""

import json
from typing import Any, Iterator, Mapping, Optional, Sequence, Tuple, Union

from .errors import ParseError

KeyPath = Union[str, Sequence[str]]

_MISSING = object()


def _split_path(path: KeyPath) -> Tuple[str, ...]:
    # Keys containing dots ("m.homeserver") must be passed as tuples
    if isinstance(path, str):
        return tuple(path.split("."))
    return tuple(path)


class Document:
    """A decoded JSON object with typed, defaulting lookups.

    Paths are either dotted strings (``"content.body"``) or tuples of keys
    (``("m.homeserver", "base_url")``).
    """

    def __init__(self, data: Mapping[str, Any]):
        self.data = data

    def __repr__(self):
        return f"Document({self.data!r})"

    def _lookup(self, path: KeyPath) -> Any:
        node: Any = self.data
        for key in _split_path(path):
            if not isinstance(node, Mapping) or key not in node:
                return _MISSING
            node = node[key]
        return node

    def has(self, path: KeyPath) -> bool:
        return self._lookup(path) is not _MISSING

    def get(self, path: KeyPath, default: Any = None) -> Any:
        value = self._lookup(path)
        return default if value is _MISSING else value

    def get_str(self, path: KeyPath, default: str = "") -> str:
        value = self._lookup(path)
        if isinstance(value, str):
            return value
        return default

    def get_int(self, path: KeyPath, default: int = 0) -> int:
        """Return an unsigned integer field; anything else yields ``default``."""
        value = self._lookup(path)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return default
        return value

    def get_bool(self, path: KeyPath, default: bool = False) -> bool:
        value = self._lookup(path)
        if isinstance(value, bool):
            return value
        return default

    def get_object(self, path: KeyPath) -> "Document":
        value = self._lookup(path)
        return Document(value if isinstance(value, Mapping) else {})

    def get_list(self, path: KeyPath) -> list:
        value = self._lookup(path)
        return value if isinstance(value, list) else []

    def items(self, path: Optional[KeyPath] = None) -> Iterator[Tuple[str, "Document"]]:
        """Iterate ``(key, Document)`` pairs of a nested object.

        Order is whatever the decoder produced. Non-object values are skipped.
        """
        node = self.data if path is None else self._lookup(path)
        if not isinstance(node, Mapping):
            return
        for key, value in node.items():
            if isinstance(value, Mapping):
                yield key, Document(value)


def parse(text: str) -> Document:
    """
    Decode ``text`` into a :class:`Document`.

    Raises:
        ParseError: If the text is not valid JSON or the top level is not an object.
            The offending text is attached as ``body``.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Invalid JSON: {e}", body=text) from e
    if not isinstance(data, dict):
        raise ParseError("JSON document is not an object", body=text)
    return Document(data)


def dumps(payload: Mapping[str, Any]) -> str:
    """Serialize a request payload compactly."""
    return json.dumps(payload, separators=(",", ":"))
