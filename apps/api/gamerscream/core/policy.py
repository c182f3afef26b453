"""Process-wide application policy: the app PIN and the token signing secret."""
from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .config import Settings
from .security import generate_secret

logger = logging.getLogger(__name__)


class AppPolicyState(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    app_pin: str = Field(..., min_length=1)
    signing_secret: str = Field(..., min_length=1)


class PolicyStore:
    """Owns the single live :class:`AppPolicyState`.

    Readers call :attr:`state` on every check; writers go through
    :meth:`replace`, which swaps the whole value in one step and writes it to
    disk.
    """

    def __init__(self, initial: AppPolicyState, path: Path | None = None) -> None:
        self._state = initial
        self._path = path

    @classmethod
    def from_settings(cls, settings: Settings) -> "PolicyStore":
        state = AppPolicyState(app_pin=settings.app_pin, signing_secret=settings.signing_secret_default)
        path = settings.admin_state_path
        persisted = _load(path)
        if persisted is not None:
            state = persisted
            logger.info("Loaded admin state from %s", path)
        return cls(state, path=path)

    @property
    def state(self) -> AppPolicyState:
        return self._state

    @property
    def app_pin(self) -> str:
        return self._state.app_pin

    @property
    def signing_secret(self) -> str:
        return self._state.signing_secret

    def replace(self, *, app_pin: str | None = None, rotate_secret: bool = True) -> AppPolicyState:
        """Install a new policy value and persist it."""

        self._state = AppPolicyState(
            app_pin=app_pin if app_pin is not None else self._state.app_pin,
            signing_secret=generate_secret() if rotate_secret else self._state.signing_secret,
        )
        self._save()
        return self._state

    def _save(self) -> None:
        if self._path is None:
            return
        try:
            self._path.write_text(self._state.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        except OSError:
            logger.exception("Failed to save admin state to %s", self._path)


def _load(path: Path | None) -> AppPolicyState | None:
    if path is None or not path.exists():
        return None
    try:
        return AppPolicyState.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, PydanticValidationError):
        logger.warning("Ignoring unreadable admin state file %s", path)
        return None
