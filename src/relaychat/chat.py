import logging

from PIL import Image

from relaychat.errors import ServiceError
from relaychat.images import preview_data
from relaychat.models import ChatSession, Message, generate_id
from relaychat.service import ChatCompletionService
from relaychat.storage import StorageManager

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "API Key not found. Please set it with `relaychat key set`."


class ChatController:
    """The send/load flow behind a chat screen.

    A new chat gets an id immediately but is written to storage only once it
    holds a message. Every send ends with exactly one assistant message, the
    model's reply or an ``Error: ...`` line, followed by a save.
    """

    def __init__(self, storage: StorageManager, service: ChatCompletionService):
        self.storage = storage
        self.service = service
        self.messages: list[Message] = []
        self.current_session_id: str | None = None
        self.is_loading = False

    def start_new_chat(self) -> str:
        self.current_session_id = generate_id()
        self.messages = []
        logger.info(f"Started new chat with ID: {self.current_session_id}")
        return self.current_session_id

    def current_session(self) -> ChatSession | None:
        if self.current_session_id is None:
            return None
        return ChatSession(id=self.current_session_id, messages=list(self.messages))

    def send_message(self, text: str, image: Image.Image | None = None) -> Message | None:
        if not text.strip() and image is None:
            return None
        if self.is_loading:
            raise RuntimeError("A message is already being sent")
        if self.current_session_id is None:
            self.start_new_chat()

        user_message = Message(
            text=text,
            is_from_user=True,
            image=preview_data(image) if image is not None else None,
        )
        self.messages.append(user_message)

        self.is_loading = True
        try:
            api_key = self.storage.load_api_key()
            if not api_key:
                return self._append_reply(MISSING_KEY_MESSAGE)

            logger.info(
                f"Calling API. History length: {len(self.messages)}, "
                f"image present: {image is not None}"
            )
            try:
                reply = self.service.generate_response(list(self.messages), api_key, image)
            except ServiceError as e:
                logger.warning(f"Request failed: {e.description}")
                return self._append_reply(f"Error: {e.description}")
            return self._append_reply(reply)
        finally:
            self.is_loading = False

    def _append_reply(self, text: str) -> Message:
        message = Message(text=text, is_from_user=False)
        self.messages.append(message)
        self.save_current_session()
        return message

    def save_current_session(self) -> None:
        session = self.current_session()
        if session is None:
            logger.error("Cannot save session, no current session id")
            return
        self.storage.save_session(session)

    def load_session(self, session_id: str) -> bool:
        session = self.storage.load_session(session_id)
        if session is None:
            logger.warning(f"Failed to load session {session_id}, starting new chat")
            self.start_new_chat()
            return False
        self.current_session_id = session.id
        self.messages = sorted(session.messages, key=lambda m: m.timestamp)
        self.storage.set_latest_session_id(session.id)
        logger.info(f"Loaded session {session.id} ({len(self.messages)} messages)")
        return True

    def load_latest_session(self) -> bool:
        latest_id = self.storage.get_latest_session_id()
        if latest_id is None:
            logger.info("No latest session found, starting new chat")
            self.start_new_chat()
            return False
        return self.load_session(latest_id)
