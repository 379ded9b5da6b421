"""Persisted client session state (bearer token plus issuance time)."""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class ClientSessionState(BaseModel):
    """What the client must remember across restarts."""

    token: str = Field(min_length=1)
    issued_at: float  # Unix timestamp, local wall clock
    ttl_seconds: int = Field(gt=0)

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.ttl_seconds


class ClientStateStore:
    """Stores ClientSessionState as a JSON file readable only by its owner."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> ClientSessionState | None:
        """Read the stored state.

        A missing, unreadable, corrupt or partial file all count as no state.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read client session state: %s", type(e).__name__)
            return None

        try:
            return ClientSessionState.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("Discarding corrupt client session state")
            return None

    def save(self, state: ClientSessionState) -> None:
        """Write the state atomically with 0600 permissions."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(state.model_dump_json())
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        """Remove the stored state completely. Clearing twice is a no-op."""
        self.path.unlink(missing_ok=True)
