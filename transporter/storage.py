"""JSON file storage.

Each game session is a metadata file plus an append-only message log. There
is no database or ORM; reads and writes go through plain helper methods that
load and dump JSON.

Directory layout:

    {base}/
      sessions/
        {id}.json             ← session metadata
        {id}/
          messages.json       ← append-only Message log
"""

from __future__ import annotations

import json
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from transporter.game import append_if_not_duplicate
from transporter.models import Message, Session


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._root = base_path / "sessions"
        self._root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _session_file(self, session_id: str) -> Path:
        return self._root / f"{session_id}.json"

    def _session_dir(self, session_id: str) -> Path:
        return self._root / session_id

    def _messages_file(self, session_id: str) -> Path:
        return self._session_dir(session_id) / "messages.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self) -> Session:
        session = Session(
            id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._session_file(session.id).write_text(session.model_dump_json(indent=2))
        self._session_dir(session.id).mkdir(exist_ok=True)
        return session

    def get_session(self, session_id: str) -> Session | None:
        # ids are uuid hex; anything else could escape the sessions dir
        if not session_id.isalnum():
            return None
        path = self._session_file(session_id)
        if not path.is_file():
            return None
        return Session.model_validate_json(path.read_text())

    def list_sessions(self) -> list[Session]:
        return [
            Session.model_validate_json(path.read_text())
            for path in sorted(self._root.glob("*.json"))
        ]

    def delete_session(self, session_id: str) -> bool:
        if self.get_session(session_id) is None:
            return False
        self._session_file(session_id).unlink()
        child_dir = self._session_dir(session_id)
        if child_dir.is_dir():
            shutil.rmtree(child_dir)
        return True

    # ------------------------------------------------------------------
    # Messages (append-only)
    # ------------------------------------------------------------------

    def get_messages(self, session_id: str) -> list[Message]:
        path = self._messages_file(session_id)
        if not path.exists():
            return []
        return [Message.model_validate(m) for m in self._read_json(path)]

    def append_message(self, session_id: str, message: Message) -> list[Message]:
        """Append unless it repeats the last message. Returns the full log."""
        existing = self.get_messages(session_id)
        updated = append_if_not_duplicate(existing, message)
        if len(updated) != len(existing):
            self._save(session_id, updated)
        return updated

    def truncate_messages(self, session_id: str, length: int) -> list[Message]:
        """Drop everything from index `length` on. Returns the remaining log."""
        messages = self.get_messages(session_id)[:max(0, length)]
        self._save(session_id, messages)
        return messages

    def _save(self, session_id: str, messages: list[Message]) -> None:
        self._write_json(
            self._messages_file(session_id),
            [m.model_dump() for m in messages],
        )
