"""
Session history: an append-only message list plus JSONL persistence.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from .messages import Message, ToolCall


logger = logging.getLogger(__name__)


class Session:
    def __init__(self, key: str, on_append: Optional[Callable[["Session", Message], None]] = None):
        self.key = key
        self.messages: List[Message] = []
        self.updated_at = datetime.now(timezone.utc)
        self.on_append = on_append

    def append(self, message: Message):
        self.messages.append(message)
        self.updated_at = datetime.now(timezone.utc)
        if self.on_append:
            self.on_append(self, message)

    def add_user(self, content: str):
        self.append(Message.user(content))

    def add_assistant(self, content: Optional[str], tool_calls: Optional[List[ToolCall]] = None):
        self.append(Message.assistant(content, tool_calls))

    def add_tool_result(self, tool_call_id: str, content: str):
        self.append(Message.tool(tool_call_id, content))

    def history(self, max_messages: Optional[int] = None) -> List[Message]:
        if max_messages is None:
            return list(self.messages)
        return self.messages[-max_messages:] if max_messages > 0 else []

    def last_user_message(self) -> Optional[Message]:
        return next((m for m in reversed(self.messages) if m.role == "user"), None)

    def clear(self):
        self.messages = []
        self.updated_at = datetime.now(timezone.utc)


METADATA_TYPE = "metadata"


def encode_key(key: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", key) + ".jsonl"


class SessionManager:
    """
    One JSONL file per session. The first line is a metadata record holding the
    session key; every following line is one message record.
    """

    def __init__(self, session_dir: Path):
        self.dir = session_dir

    def path_for(self, key: str) -> Path:
        return self.dir / encode_key(key)

    def get_or_create(self, key: str) -> Session:
        """Load a session, or start an empty one; later appends are written through."""
        session = Session(key, on_append=self.append)
        path = self.path_for(key)
        if not path.exists():
            return session
        for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
                if isinstance(record, dict) and record.get("_type") == METADATA_TYPE:
                    continue
                session.messages.append(Message.from_record(record))
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                logger.warning("Skipping unreadable line %d of %s: %s", lineno, path, exc)
        if session.messages:
            try:
                session.updated_at = datetime.fromisoformat(session.messages[-1].timestamp)
            except ValueError:
                logger.debug("Session %s has an unparseable timestamp", key)
        logger.info("Loaded session %s with %d messages", key, len(session.messages))
        return session

    def save(self, session: Session):
        """Rewrite the whole file, e.g. after the session was cleared."""
        self.dir.mkdir(parents=True, exist_ok=True)
        lines = [self._metadata_line(session)]
        lines += [json.dumps(m.to_record(), ensure_ascii=False) for m in session.messages]
        self.path_for(session.key).write_text("\n".join(lines) + "\n", encoding="utf-8")

    def append(self, session: Session, message: Message):
        """Persist one message as a single JSON line."""
        self.dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(session.key)
        with path.open("a", encoding="utf-8") as f:
            if f.tell() == 0:
                f.write(self._metadata_line(session) + "\n")
            f.write(json.dumps(message.to_record(), ensure_ascii=False) + "\n")

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list_keys(self) -> List[str]:
        if not self.dir.exists():
            return []
        return sorted(self._read_key(p) for p in self.dir.glob("*.jsonl"))

    @staticmethod
    def _metadata_line(session: Session) -> str:
        return json.dumps({"_type": METADATA_TYPE, "key": session.key}, ensure_ascii=False)

    @staticmethod
    def _read_key(path: Path) -> str:
        # files written before the metadata line existed only know their encoded name
        with path.open(encoding="utf-8") as f:
            first = f.readline()
        try:
            record = json.loads(first)
        except ValueError:
            return path.stem
        if isinstance(record, dict) and record.get("_type") == METADATA_TYPE and isinstance(record.get("key"), str):
            return record["key"]
        return path.stem
