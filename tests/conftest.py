import json
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from PIL import Image

from relaychat.config import ChatConfig
from relaychat.kvstore import MemoryKeyValueStore
from relaychat.models import Message
from relaychat.service import ChatCompletionService
from relaychat.storage import StorageManager

BASE_TIME = datetime(2025, 4, 23, 12, 0, tzinfo=timezone.utc)


def make_message(text: str, is_from_user: bool = True, minutes: int = 0, **kwargs) -> Message:
    return Message(
        text=text,
        is_from_user=is_from_user,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        **kwargs,
    )


def mock_response(payload, status_code: int = 200):
    resp = Mock()
    if isinstance(payload, (bytes, str)):
        resp.content = payload.encode() if isinstance(payload, str) else payload
    else:
        resp.content = json.dumps(payload).encode()
    resp.status_code = status_code
    return resp


def reply_payload(content: str = "Hello there") -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1745400000,
        "model": "gpt-4.1",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
    }


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def storage(kv):
    return StorageManager(kv)


@pytest.fixture
def config():
    return ChatConfig(
        api_url="https://api.example.com/v1/chat/completions",
        model="gpt-4.1",
        timeout_seconds=5.0,
        data_file="unused.json",
    )


@pytest.fixture
def mock_client():
    client = Mock()
    client.post.return_value = mock_response(reply_payload())
    return client


@pytest.fixture
def service(config, mock_client):
    return ChatCompletionService(config, client=mock_client)


@pytest.fixture
def small_image():
    return Image.new("RGB", (32, 24), color=(200, 30, 30))


def sent_body(client: Mock) -> dict:
    kwargs = client.post.call_args.kwargs
    return json.loads(kwargs["content"])
