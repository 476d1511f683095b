"""
Current-actor cache.

The actor is kept as a serialized User under the "cts_user" key of any
string key-value mapping and rehydrated on startup.
"""

import logging
from typing import MutableMapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ..models.ticket import User

logger = logging.getLogger(__name__)

SESSION_KEY = "cts_user"


class SessionStore:

    def __init__(self, storage: Optional[MutableMapping[str, str]] = None):
        self.storage = storage if storage is not None else {}
        self._current: Optional[User] = None

    @property
    def current_user(self) -> Optional[User]:
        return self._current

    def sign_in(self, user: User) -> User:
        self._current = user
        self.storage[SESSION_KEY] = user.model_dump_json()
        return user

    def sign_out(self) -> None:
        self._current = None
        self.storage.pop(SESSION_KEY, None)

    def restore(self) -> Optional[User]:
        """Rehydrate from storage; a corrupt slot is dropped."""
        raw = self.storage.get(SESSION_KEY)
        if not raw:
            return None
        try:
            self._current = User.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("Discarding unreadable session slot %s", SESSION_KEY)
            self.storage.pop(SESSION_KEY, None)
            self._current = None
        return self._current
