from langchain_core.messages import HumanMessage

from langchain_classroom import ChatClassroom, EmptyResponse, RequestFailed

try:
    llm = ChatClassroom(api_key="anyway")
    res = llm.invoke([HumanMessage(content="Hello")])
    print(res.content)
except RequestFailed as e:
    if e.is_auth_error:
        print("Check your CLASSROOM_API_KEY.")
    elif e.is_rate_limited:
        print(f"Slow down: {e.message}")
    elif e.is_server_error:
        print(f"Server error {e.status_code} - consider retrying.")
    else:
        print(e.to_dict())
except EmptyResponse:
    print("The assistant sent nothing back.")
