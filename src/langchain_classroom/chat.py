from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Annotated, Any, AsyncIterator, Callable, Iterator, Literal, Optional, Sequence

import httpx
from langchain_core.callbacks import AsyncCallbackManagerForLLMRun, CallbackManagerForLLMRun
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage, HumanMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from langchain_classroom._auth import AuthConfig
from langchain_classroom._client import ClassroomHttpClient, HttpConfig
from langchain_classroom._messages import accumulate, to_chat_messages, upsert_assistant
from langchain_classroom._sse import open_async_delta_stream, open_delta_stream

CHAT_PATH = "/functions/v1/chat-with-ai"
ENV_BASE_URL = "CLASSROOM_BASE_URL"
# Local Supabase stack default.
DEFAULT_BASE_URL = "http://localhost:54321"
MAX_PROMPT_CHARS = 2000


def _default_base_url() -> str:
    return os.getenv(ENV_BASE_URL) or DEFAULT_BASE_URL


# ---------------------------------------------------------------------------
# Request envelope for POST /functions/v1/chat-with-ai
# ---------------------------------------------------------------------------


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    messages: Annotated[list[ChatMessage], Field(min_length=1)]


class ChatClassroom(BaseChatModel):
    """
    LangChain chat model over the classroom `chat-with-ai` function.

    The endpoint only streams, so:
    - .stream/.astream emit one AIMessageChunk per text delta
    - .invoke/.ainvoke fold the same stream into a single AIMessage
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    api_key: Optional[str] = Field(default=None, exclude=True, repr=False)
    base_url: str = Field(default_factory=_default_base_url)
    chat_path: str = CHAT_PATH
    timeout_s: float = 120.0

    _http: ClassroomHttpClient = PrivateAttr()

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        chat_path: str = CHAT_PATH,
        timeout_s: float = 120.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            api_key=api_key,
            base_url=(base_url or _default_base_url()).rstrip("/"),
            chat_path=chat_path,
            timeout_s=timeout_s,
            **kwargs,
        )

        auth = AuthConfig.from_env_or_value(self.api_key)
        self._http = ClassroomHttpClient(
            config=HttpConfig(base_url=self.base_url, timeout_s=self.timeout_s),
            api_key=auth.api_key,
        )

    @property
    def _llm_type(self) -> str:
        return "classroom-chat"

    @property
    def _identifying_params(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "chat_path": self.chat_path,
            "timeout_s": self.timeout_s,
        }

    def _build_payload(self, messages: Sequence[BaseMessage]) -> dict[str, Any]:
        return ChatRequest(messages=to_chat_messages(messages)).model_dump()

    @staticmethod
    def _result_from_chunks(chunks: list[ChatGenerationChunk]) -> ChatResult:
        transcript = ""
        for chunk in chunks:
            transcript = accumulate(transcript, chunk.text)
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=transcript))])

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        return self._result_from_chunks(list(self._stream(messages, stop, run_manager, **kwargs)))

    async def _agenerate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        chunks = [c async for c in self._astream(messages, stop, run_manager, **kwargs)]
        return self._result_from_chunks(chunks)

    def _stream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> Iterator[ChatGenerationChunk]:
        # `stop` and provider kwargs have no counterpart in the endpoint; ignored.
        payload = self._build_payload(messages)

        with self._http.stream_post_json(self.chat_path, payload) as r:
            self._http.raise_for_status(r)
            with open_delta_stream(r) as deltas:
                for text in deltas:
                    chunk = ChatGenerationChunk(message=AIMessageChunk(content=text))
                    if run_manager is not None:
                        run_manager.on_llm_new_token(text, chunk=chunk)
                    yield chunk

    async def _astream(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: AsyncCallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatGenerationChunk]:
        payload = self._build_payload(messages)

        async with self._http.astream_post_json(self.chat_path, payload) as r:
            await self._http.araise_for_status(r)
            async with open_async_delta_stream(r) as deltas:
                async for text in deltas:
                    chunk = ChatGenerationChunk(message=AIMessageChunk(content=text))
                    if run_manager is not None:
                        await run_manager.on_llm_new_token(text, chunk=chunk)
                    yield chunk


# ------------------------------------------------------------------------------------
# Conversation holder used by the classroom UI
# ------------------------------------------------------------------------------------


@dataclass(slots=True)
class ChatTurn:
    """Outcome of one send(): the assistant transcript and whether the stream broke."""

    transcript: str
    interrupted: bool = False
    deltas: int = 0


DeltaCallback = Callable[[str, str], None]


class ChatSession:
    """
    Keeps the conversation with the class assistant and folds each streamed
    reply into it.

    RequestFailed / EmptyResponse propagate and leave no assistant message.
    A transport failure after the first delta keeps the partial reply and
    returns it with interrupted=True.
    """

    def __init__(
        self,
        model: ChatClassroom | None = None,
        *,
        on_delta: DeltaCallback | None = None,
        **model_kwargs: Any,
    ) -> None:
        self.model = model or ChatClassroom(**model_kwargs)
        self.messages: list[BaseMessage] = []
        self._on_delta = on_delta

    def clear(self) -> None:
        self.messages = []

    def _start_turn(self, text: str) -> list[BaseMessage]:
        trimmed = text.strip()
        if not trimmed:
            raise ValueError("Prompt is empty")
        if len(trimmed) > MAX_PROMPT_CHARS:
            raise ValueError(f"Prompt too long: {len(trimmed)} > {MAX_PROMPT_CHARS} characters")
        self.messages = [*self.messages, HumanMessage(content=trimmed)]
        return self.messages

    def _apply_delta(self, turn: ChatTurn, content: Any) -> None:
        if not isinstance(content, str) or not content:
            return
        turn.transcript = accumulate(turn.transcript, content)
        turn.deltas += 1
        self.messages = upsert_assistant(self.messages, turn.transcript)
        if self._on_delta is not None:
            self._on_delta(content, turn.transcript)

    def _interrupted(self, turn: ChatTurn, exc: Exception) -> ChatTurn:
        logging.warning(
            "Chat stream interrupted after %d deltas (%d chars kept): %r",
            turn.deltas,
            len(turn.transcript),
            exc,
        )
        turn.interrupted = True
        return turn

    def send(self, text: str) -> ChatTurn:
        history = self._start_turn(text)
        turn = ChatTurn(transcript="")
        try:
            for chunk in self.model.stream(history):
                self._apply_delta(turn, chunk.content)
        except httpx.TransportError as e:
            if not turn.deltas:
                raise
            return self._interrupted(turn, e)
        return turn

    async def asend(self, text: str) -> ChatTurn:
        history = self._start_turn(text)
        turn = ChatTurn(transcript="")
        try:
            async for chunk in self.model.astream(history):
                self._apply_delta(turn, chunk.content)
        except httpx.TransportError as e:
            if not turn.deltas:
                raise
            return self._interrupted(turn, e)
        return turn
