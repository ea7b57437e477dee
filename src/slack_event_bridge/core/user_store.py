"""Process-lifetime user directory."""

from typing import Any


class InMemoryUserStore:
    """Users keyed by id; updates merge into existing records."""

    def __init__(self) -> None:
        self._users: dict[str, dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._users)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._users

    def user_for_id(self, user_id: str, **fields: Any) -> dict[str, Any]:
        user = self._users.setdefault(user_id, {"id": user_id})
        user.update(fields)
        return user

    def get(self, user_id: str) -> dict[str, Any] | None:
        return self._users.get(user_id)

    def users(self) -> dict[str, dict[str, Any]]:
        return dict(self._users)
