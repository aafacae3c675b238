import dotenv

from langchain_classroom import ChatSession

dotenv.load_dotenv()

session = ChatSession(on_delta=lambda delta, transcript: print(delta, end="", flush=True))

turn = session.send("Explain in one paragraph what a fraction is")
print()
if turn.interrupted:
    print("(connection lost, partial answer kept)")

session.send("Now give me an example with pizza")
print()
