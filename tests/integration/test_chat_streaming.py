import pytest
from langchain_core.messages import HumanMessage

from langchain_classroom.chat import ChatClassroom, ChatSession


@pytest.mark.integration
def test_chat_streaming_collect() -> None:
    model = ChatClassroom()

    pieces: list[str] = []
    for chunk in model.stream([HumanMessage(content="Say: hello")]):
        if isinstance(chunk.content, str) and chunk.content:
            pieces.append(chunk.content)

    final = "".join(pieces).strip()
    assert final


@pytest.mark.integration
@pytest.mark.asyncio
async def test_chat_session_two_turns() -> None:
    session = ChatSession()

    first = await session.asend("Name one prime number. Answer with the number only.")
    second = await session.asend("And the next one?")

    assert first.transcript.strip()
    assert second.transcript.strip()
    assert [m.type for m in session.messages] == ["human", "ai", "human", "ai"]
