from __future__ import annotations

from typing import Any, Optional, Protocol


class SessionStore(Protocol):
    """Transient per-visitor key-value storage scoped to the browser session."""

    def set(self, key: str, value: Any) -> None:
        ...

    def get(self, key: str) -> Optional[Any]:
        ...

    def remove(self, key: str) -> None:
        ...

    def clear(self) -> None:
        ...
