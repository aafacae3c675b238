import os

import pytest
from dotenv import find_dotenv, load_dotenv

# Load .env as early as possible (before pytest_collection_modifyitems)
load_dotenv(find_dotenv(usecwd=True))

_REQUIRED_ENV = {
    "chat": ("CLASSROOM_API_KEY", "CLASSROOM_BASE_URL"),
    "questions": ("MISTRAL_API_KEY",),
}


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    for item in items:
        if "integration" not in item.keywords:
            continue
        group = "questions" if "questions" in item.nodeid else "chat"
        missing = [name for name in _REQUIRED_ENV[group] if not os.getenv(name)]
        if missing:
            item.add_marker(pytest.mark.skip(reason=f"Missing {', '.join(missing)} in environment/.env"))
