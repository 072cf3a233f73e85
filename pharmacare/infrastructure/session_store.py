from __future__ import annotations

from typing import Any, MutableMapping, Optional


class MappingSessionStore:
    """SessionStore over a mutable mapping such as Starlette's ``request.session``.

    Values must be JSON serialisable because the session cookie is signed
    JSON.
    """

    def __init__(self, data: Optional[MutableMapping[str, Any]] = None) -> None:
        self._data: MutableMapping[str, Any] = data if data is not None else {}

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()
