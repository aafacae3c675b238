import logging
import os

import dotenv
import httpx

from langchain_classroom import StreamingChatDecoder

dotenv.load_dotenv()

logging.basicConfig(
    level=logging.DEBUG,
    format="%(levelname)s [%(asctime)s] %(name)s - %(message)s",
)

url = os.environ["CLASSROOM_BASE_URL"].rstrip("/") + "/functions/v1/chat-with-ai"
api_key = os.environ["CLASSROOM_API_KEY"]

payload = {"messages": [{"role": "user", "content": "Answer with the word: OK"}]}
headers = {
    "Authorization": f"Bearer {api_key}",
    "Content-Type": "application/json",
    "Accept": "text/event-stream",
}

decoder = StreamingChatDecoder()

with httpx.Client(timeout=120.0) as client:
    with client.stream("POST", url, headers=headers, json=payload) as r:
        print("status:", r.status_code)
        print("headers:", dict(r.headers))
        for i, chunk in enumerate(r.iter_bytes()):
            print(f"chunk {i}: {chunk!r}")
            for delta in decoder.feed(chunk):
                print("  delta:", repr(delta))
            if decoder.pending:
                print("  pending:", repr(decoder.pending))
            if decoder.done:
                print("[DONE]")
                break
        for delta in decoder.finish():
            print("  flushed:", repr(delta))
