import asyncio

import dotenv

from langchain_classroom import QuestionGenerationConfig, QuestionGenerator

dotenv.load_dotenv()


async def main() -> None:
    gen = QuestionGenerator(config=QuestionGenerationConfig(temperature=0.3))
    try:
        questions = await gen.agenerate("Photosynthesis")
    finally:
        await gen.aclose()

    for i, q in enumerate(questions, 1):
        print(f"{i}. {q}")


asyncio.run(main())
