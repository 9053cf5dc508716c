"""Best-effort, append-only session history backed by a JSON file."""

import json
import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from ..models import SwipeSession


logger = logging.getLogger(__name__)


class SessionStore:
    """Persist finished or abandoned sessions as a JSON list.

    Saving appends a record rather than updating one in place. Failures are
    logged and swallowed so persistence never blocks generation or swiping.
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def _read_records(self) -> list[dict]:
        if not self.path.exists():
            return []
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a list of sessions")
        return data

    def save(self, session: SwipeSession) -> bool:
        """Append ``session`` to the history. Returns False if it could not be saved."""
        with self._lock:
            try:
                records = self._read_records()
                records.append(session.model_dump(mode="json"))
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
                tmp_path.write_text(json.dumps(records, indent=2), encoding="utf-8")
                tmp_path.replace(self.path)
            except (OSError, ValueError) as exc:
                logger.error("Error saving session %s: %s", session.id, exc)
                return False

        logger.info("💾 Saved session %s (%d images, %d liked)",
                    session.id, len(session.images), session.liked_count)
        return True

    def load_all(self, user_id: str | None = None) -> list[SwipeSession]:
        """Return saved sessions, oldest first, optionally only one user's."""
        with self._lock:
            try:
                records = self._read_records()
            except (OSError, ValueError) as exc:
                logger.error("Error loading sessions from %s: %s", self.path, exc)
                return []

        sessions: list[SwipeSession] = []
        for record in records:
            try:
                session = SwipeSession.model_validate(record)
            except ValidationError as exc:
                logger.warning("Skipping unreadable session record: %s", exc)
                continue
            if user_id is None or session.user_id == user_id:
                sessions.append(session)
        return sessions
