import logging

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from relaychat.kvstore import KeyValueStore
from relaychat.models import ChatSession

logger = logging.getLogger(__name__)

_SESSION_LIST = TypeAdapter(list[ChatSession])


class StorageManager:
    """Chat sessions, the latest-session pointer and the API key on top of a
    flat key-value store.

    Every mutation reads the whole session list, changes it in memory and
    writes the whole list back. There is no locking: one process owns the
    store at a time.
    """

    def __init__(self, store: KeyValueStore, namespace: str = "relaychat"):
        self.store = store
        self.namespace = namespace
        self.sessions_key = f"{namespace}.chatSessions"
        self.latest_session_id_key = f"{namespace}.latestSessionId"
        self.api_key_key = f"{namespace}.apiKey"

    def load_sessions(self) -> list[ChatSession]:
        raw = self.store.get(self.sessions_key)
        if raw is None:
            return []
        try:
            sessions = _SESSION_LIST.validate_json(raw)
        except ValidationError as e:
            logger.error(f"Error decoding sessions: {e}")
            return []
        return sorted(sessions, key=lambda s: s.last_modified, reverse=True)

    def _write_sessions(self, sessions: list[ChatSession]) -> bool:
        try:
            payload = _SESSION_LIST.dump_json(sessions).decode("utf-8")
        except PydanticSerializationError as e:
            logger.error(f"Error encoding sessions: {e}")
            return False
        self.store.set(self.sessions_key, payload)
        return True

    def save_session(self, session: ChatSession) -> None:
        sessions = [s for s in self.load_sessions() if s.id != session.id]
        sessions.append(session)
        if not self._write_sessions(sessions):
            return
        self.set_latest_session_id(session.id)
        logger.info(f"Session {session.id} saved ({len(session.messages)} messages)")

    def load_session(self, session_id: str) -> ChatSession | None:
        for session in self.load_sessions():
            if session.id == session_id:
                return session
        return None

    def delete_session(self, session_id: str) -> None:
        sessions = [s for s in self.load_sessions() if s.id != session_id]
        if not self._write_sessions(sessions):
            return
        logger.info(f"Session {session_id} deleted")
        if self.get_latest_session_id() == session_id:
            self.store.delete(self.latest_session_id_key)

    def delete_all_sessions(self) -> None:
        self.store.delete(self.sessions_key)
        self.store.delete(self.latest_session_id_key)
        logger.info("All chat history cleared")

    def set_latest_session_id(self, session_id: str) -> None:
        self.store.set(self.latest_session_id_key, session_id)

    def get_latest_session_id(self) -> str | None:
        return self.store.get(self.latest_session_id_key)

    def save_api_key(self, key: str) -> None:
        self.store.set(self.api_key_key, key)
        logger.info("API key saved")

    def load_api_key(self) -> str | None:
        return self.store.get(self.api_key_key)

    def delete_api_key(self) -> None:
        self.store.delete(self.api_key_key)
        logger.info("API key deleted")

    def delete_all_data(self) -> None:
        self.delete_all_sessions()
        self.delete_api_key()
        logger.info("All data (history and API key) deleted")
