"""
Request/response shapes exchanged with external services.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class TextConversionResponse(BaseModel):
    """Normalized answer of the OCR text-conversion service."""

    body: str | None = None
    page_count: int = 0
    error: bool = False
    message: str | None = None
    credits_remaining: int | None = None


class CompletionRequest(BaseModel):
    system: str
    prompt: str
    model: str
    max_tokens: int
    temperature: float


class ContentBlock(BaseModel):
    type: str
    text: str | None = None


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


class CompletionResponse(BaseModel):
    content: list[ContentBlock] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)

    def first_text(self) -> str | None:
        """Text of the first ``text`` block, or None when the reply has none."""
        for block in self.content:
            if block.type == "text" and block.text is not None:
                return block.text
        return None
