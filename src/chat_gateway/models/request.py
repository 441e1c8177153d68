"""
Request models for the chat gateway.
"""

from typing import Optional, List, Dict, Any, Union, Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Role = Literal["user", "assistant", "system"]
ReasoningEffort = Literal["none", "low", "medium", "high"]


class ImageURL(BaseModel):
    """Image reference; a data URI or a URL reachable by the backend."""
    url: str


class ContentPart(BaseModel):
    """One part of a multimodal message."""
    type: Literal["text", "image_url"]
    text: Optional[str] = None
    image_url: Optional[ImageURL] = None


MessageContent = Union[str, List[ContentPart]]


class ChatMessage(BaseModel):
    """
    A conversation message as sent to the backend.

    ``id`` is carried for the client's bookkeeping and never forwarded.
    """
    model_config = ConfigDict(frozen=True)

    role: Role
    content: MessageContent
    id: Optional[str] = None

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to the OpenAI chat message shape."""
        if isinstance(self.content, str):
            content: Any = self.content
        else:
            content = [part.model_dump(exclude_none=True) for part in self.content]
        return {"role": self.role, "content": content}


class ProviderConfig(BaseModel):
    """Per-request generation settings handed to a provider adapter."""
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    reasoning_effort: Optional[ReasoningEffort] = None


class ChatRequest(BaseModel):
    """
    Gateway request body.

    Keys are accepted in camelCase (``systemInstruction``) as sent by the
    web client, or in snake_case.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    messages: List[ChatMessage] = Field(default_factory=list)
    provider: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    system_instruction: Optional[str] = None
    active_prompt_content: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    reasoning_effort: Optional[ReasoningEffort] = None

    def effective_system_instruction(self) -> str:
        """Caller instruction and active custom prompt, blank-line joined, empty parts dropped."""
        parts = [self.system_instruction, self.active_prompt_content]
        return "\n\n".join(part for part in parts if part)

    def build_messages(self) -> List[ChatMessage]:
        """
        Message list to send upstream.

        Caller-embedded system messages are dropped; the effective system
        instruction, if any, becomes the single leading system message.
        """
        messages: List[ChatMessage] = []
        instruction = self.effective_system_instruction()
        if instruction:
            messages.append(ChatMessage(role="system", content=instruction))
        messages.extend(m for m in self.messages if m.role != "system")
        return messages
