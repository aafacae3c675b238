"""
Diagnostic question generation for the classroom quizzes.

A student names a topic; the upstream chat-completion model answers in JSON
mode with five questions ordered from simple to hard, so the teacher can see
where the student's understanding stops.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from langchain_classroom._auth import AuthConfig
from langchain_classroom._client import ClassroomHttpClient, HttpConfig

ENV_MISTRAL_API_KEY = "MISTRAL_API_KEY"
DEFAULT_BASE_URL = "https://api.mistral.ai"
CHAT_COMPLETIONS_PATH = "/v1/chat/completions"

DEFAULT_SYSTEM_PROMPT = (
    "You are a teacher's assistant. A student gives you a topic they are interested in, "
    "and you must come up with five questions, from simple to hard, to find out what "
    "exactly the student does not know. Answer with JSON: "
    '{"questions": ["question1", "question2", "question3", "question4", "question5"]}'
)

FloatTemperature = Annotated[float, Field(ge=0, le=2)]
FloatTopP = Annotated[float, Field(ge=0, le=1)]
PositiveInt = Annotated[int, Field(ge=1)]


class QuestionGenerationConfig(BaseModel):
    """
    Upstream request parameters. The prompt and model are configuration only;
    the request always asks for a JSON object response.
    """
    model_config = ConfigDict(extra="forbid")

    model: str = "mistral-medium-latest"
    temperature: FloatTemperature = 0.7
    max_tokens: PositiveInt = 2048
    top_p: FloatTopP = 1.0
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


def _validate_topic(topic: Any) -> str:
    if not isinstance(topic, str) or not topic.strip():
        raise ValueError("Topic is required")
    return topic


def _questions_from_response(data: Any) -> list[str]:
    """
    Pull the question list out of a chat.completion response.

    - content is JSON with a "questions" list -> its string items
    - content is JSON without one -> []
    - content is not JSON -> [content]
    - no content at all -> []
    """
    if not isinstance(data, dict):
        return []
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return []
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        return []

    try:
        parsed = json.loads(content)
    except ValueError:
        return [content]

    if not isinstance(parsed, dict):
        return []
    questions = parsed.get("questions")
    if not isinstance(questions, list):
        return []
    return [q for q in questions if isinstance(q, str) and q.strip()]


@dataclass(slots=True)
class QuestionGenerator:
    """
    Client for diagnostic question sets.
    Provides synchronous and asynchronous generation from a topic string.
    """
    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout_s: float = 120.0
    config: QuestionGenerationConfig = field(default_factory=QuestionGenerationConfig)

    _http: ClassroomHttpClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        auth = AuthConfig.from_env_or_value(self.api_key, env_var=ENV_MISTRAL_API_KEY)
        self._http = ClassroomHttpClient(
            config=HttpConfig(base_url=self.base_url.rstrip("/"), timeout_s=self.timeout_s),
            api_key=auth.api_key,
        )

    def build_payload(self, topic: str) -> dict[str, Any]:
        cfg = self.config
        return {
            "model": cfg.model,
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
            "top_p": cfg.top_p,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": cfg.system_prompt},
                {"role": "user", "content": _validate_topic(topic)},
            ],
        }

    def generate(self, topic: str) -> list[str]:
        """
        Generate diagnostic questions synchronously.

        Args:
            topic: Topic named by the student.

        Returns:
            The questions, simplest first.

        Raises:
            ValueError: If the topic is empty.
            RequestFailed: If the upstream API answers with an error status.
        """
        payload = self.build_payload(topic)
        response = self._http.post_json(CHAT_COMPLETIONS_PATH, payload)
        return _questions_from_response(response.json())

    async def agenerate(self, topic: str) -> list[str]:
        """Async version of generate()."""
        payload = self.build_payload(topic)
        response = await self._http.apost_json(CHAT_COMPLETIONS_PATH, payload)
        return _questions_from_response(response.json())

    def close(self) -> None:
        self._http.close()

    async def aclose(self) -> None:
        await self._http.aclose()
