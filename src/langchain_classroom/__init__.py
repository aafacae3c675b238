from __future__ import annotations

from langchain_classroom.chat import ChatClassroom, ChatSession, ChatTurn
from langchain_classroom.questions import QuestionGenerationConfig, QuestionGenerator
from langchain_classroom._errors import ClassroomError, EmptyResponse, RequestFailed
from langchain_classroom._sse import (
    StreamingChatDecoder,
    aiter_text_deltas,
    iter_text_deltas,
    open_async_delta_stream,
    open_delta_stream,
)

__all__ = [
    "ChatClassroom",
    "ChatSession",
    "ChatTurn",
    "ClassroomError",
    "EmptyResponse",
    "QuestionGenerationConfig",
    "QuestionGenerator",
    "RequestFailed",
    "StreamingChatDecoder",
    "aiter_text_deltas",
    "iter_text_deltas",
    "open_async_delta_stream",
    "open_delta_stream",
]

__version__ = "0.1.0"
