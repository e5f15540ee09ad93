"""Authentication session held by API clients."""

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, PrivateAttr
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


class AuthSession(BaseModel):
    """Token and user info for the signed-in user.

    The session is explicit state owned by the caller. It is only written
    to disk when ``persist`` is called, and ``clear`` forgets it both in
    memory and on disk.
    """

    model_config = ConfigDict(validate_assignment=True)

    token: str | None = None
    user: dict[str, Any] | None = None

    _path: Path | None = PrivateAttr(default=None)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @classmethod
    def load(cls, path: str | Path) -> "AuthSession":
        """Load a session from a JSON file.

        A missing or unreadable file yields an empty session bound to the
        same path.
        """
        path = Path(path)
        session = cls()
        if path.exists():
            try:
                session = cls.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, PydanticValidationError) as e:
                logger.warning("Ignoring unreadable session file %s: %s", path, e)
                session = cls()
        session._path = path
        return session

    def update(self, token: str, user: dict[str, Any] | None) -> None:
        self.token = token
        self.user = user

    def persist(self, path: str | Path | None = None) -> None:
        """Write the session to disk."""
        if path is not None:
            self._path = Path(path)
        if self._path is None:
            raise ValueError("No session file path configured")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(self.model_dump_json(), encoding="utf-8")

    def clear(self) -> None:
        """Forget the token and user, removing any persisted copy."""
        self.token = None
        self.user = None
        if self._path is not None:
            self._path.unlink(missing_ok=True)
