"""Wire shapes for the chat-completions endpoint.

A message's ``content`` is either a plain string or a list of typed parts;
the part list is discriminated on ``type`` so each variant serializes to its
own JSON shape.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageURL(BaseModel):
    url: str


class ImagePart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageURL


ContentPart = Annotated[TextPart | ImagePart, Field(discriminator="type")]


class ApiMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str | list[ContentPart]

    @classmethod
    def text(cls, role: str, text: str) -> "ApiMessage":
        return cls(role=role, content=text)

    @classmethod
    def with_image(cls, role: str, text: str, data_url: str) -> "ApiMessage":
        return cls(
            role=role,
            content=[
                TextPart(text=text),
                ImagePart(image_url=ImageURL(url=data_url)),
            ],
        )


class CompletionRequest(BaseModel):
    model: str
    messages: list[ApiMessage]


class ResponseMessage(BaseModel):
    role: str | None = None
    content: str | None = None


class Choice(BaseModel):
    index: int | None = None
    message: ResponseMessage | None = None
    finish_reason: str | None = None


class Usage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class ApiErrorBody(BaseModel):
    message: str | None = None
    type: str | None = None
    param: str | None = None
    code: str | int | None = None


class CompletionResponse(BaseModel):
    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str | None = None
    choices: list[Choice] | None = None
    usage: Usage | None = None
    error: ApiErrorBody | None = None

    def first_content(self) -> str | None:
        if not self.choices:
            return None
        message = self.choices[0].message
        if message is None:
            return None
        return message.content
