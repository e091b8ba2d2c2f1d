from relaychat.chat import ChatController
from relaychat.config import ChatConfig, ConfigError
from relaychat.kvstore import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from relaychat.models import ChatSession, Message
from relaychat.service import ChatCompletionService
from relaychat.storage import StorageManager

__all__ = [
    "ChatCompletionService",
    "ChatConfig",
    "ChatController",
    "ChatSession",
    "ConfigError",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "Message",
    "StorageManager",
]
