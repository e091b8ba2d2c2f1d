import logging
from collections.abc import Sequence

import httpx
from PIL import Image
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from relaychat.config import ChatConfig
from relaychat.errors import (
    ApiError,
    ApiKeyMissing,
    InvalidResponseStructure,
    NetworkError,
    RequestEncodingFailed,
    ResponseDecodingFailed,
    UnknownError,
)
from relaychat.images import encode_image
from relaychat.models import Message
from relaychat.payload import ApiMessage, CompletionRequest, CompletionResponse

logger = logging.getLogger(__name__)


class ChatCompletionService:
    def __init__(self, config: ChatConfig | None = None, client: httpx.Client | None = None):
        self.config = config or ChatConfig()
        self._client = client

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.config.timeout_seconds)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def build_messages(
        self, history: Sequence[Message], new_image: Image.Image | None = None
    ) -> list[ApiMessage]:
        api_messages: list[ApiMessage] = []
        last_index = len(history) - 1

        for index, message in enumerate(history):
            # Only the live attachment is sent; stored message images stay local.
            if index == last_index and message.is_from_user and new_image is not None:
                encoded = encode_image(
                    new_image,
                    max_bytes=self.config.max_image_bytes,
                    quality=self.config.jpeg_quality,
                    fallback_quality=self.config.fallback_jpeg_quality,
                )
                logger.info(
                    f"Image included for last user message, "
                    f"{len(encoded.data)} bytes, mime type: {encoded.mime_type}"
                )
                api_messages.append(
                    ApiMessage.with_image(message.role, message.text, encoded.data_url())
                )
            else:
                api_messages.append(ApiMessage.text(message.role, message.text))

        return api_messages

    def build_request(
        self, history: Sequence[Message], new_image: Image.Image | None = None
    ) -> CompletionRequest:
        api_messages = self.build_messages(history, new_image)
        if not api_messages:
            logger.error("No messages constructed for API call")
            raise InvalidResponseStructure()
        return CompletionRequest(model=self.config.model, messages=api_messages)

    def generate_response(
        self,
        history: Sequence[Message],
        api_key: str,
        new_image: Image.Image | None = None,
    ) -> str:
        if not api_key:
            raise ApiKeyMissing()

        request_body = self.build_request(history, new_image)
        try:
            body = request_body.model_dump_json()
        except (PydanticSerializationError, TypeError, ValueError) as e:
            logger.error(f"Error encoding request: {e}")
            raise RequestEncodingFailed(e) from e

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        logger.info(f"Sending request with {len(request_body.messages)} messages")

        try:
            response = self.client.post(self.config.api_url, content=body, headers=headers)
            logger.debug(f"Response status code: {response.status_code}")
            parsed = CompletionResponse.model_validate_json(response.content)
        except httpx.RequestError as e:
            logger.error(f"Network error: {e}")
            raise NetworkError(e) from e
        except ValidationError as e:
            logger.error(f"Decoding error: {e}")
            raise ResponseDecodingFailed(e) from e
        except Exception as e:
            logger.error(f"Unknown error: {e}")
            raise UnknownError(e) from e

        if parsed.error is not None:
            message = parsed.error.message or "Unknown API error"
            logger.error(f"API error: {message}")
            raise ApiError(message)

        content = parsed.first_content()
        if content is None:
            logger.error("Invalid response structure or empty content")
            raise InvalidResponseStructure()

        logger.info("Received response successfully")
        return content
