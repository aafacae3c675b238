"""Bearer-token lookup shared by the chat endpoint and the question generator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

ENV_API_KEY = "CLASSROOM_API_KEY"


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """Bearer token for one upstream. The key never shows up in repr()."""

    api_key: str = field(repr=False)

    @staticmethod
    def from_env_or_value(api_key: str | None, *, env_var: str = ENV_API_KEY) -> AuthConfig:
        """
        Resolve the key from the argument, else from `env_var`.

        Surrounding whitespace is dropped (keys pasted into .env files often
        carry it); a blank key counts as missing.

        Raises:
            ValueError: If neither source yields a key.
        """
        key = (api_key or os.getenv(env_var) or "").strip()
        if not key:
            raise ValueError(
                f"API key missing. Define {env_var} in environment or pass api_key value"
            )
        return AuthConfig(api_key=key)
