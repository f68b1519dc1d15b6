"""Connection configuration for the REST client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .models import Timeout, WriteSizeLimit


@dataclass
class RestApiConfig:
    """Settings needed to build a RestApi.

    ``timeout`` is the server-side read timeout sent with every request;
    ``http_timeout`` is the local httpx timeout (stream reads never time out).
    """

    database: str
    base_path: str = ""
    timeout: Timeout = field(default_factory=lambda: Timeout.min(15))
    write_size_limit: WriteSizeLimit = WriteSizeLimit.UNLIMITED
    http_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> RestApiConfig:
        """Read the configuration from ``FIREBASE_*`` environment variables.

        Raises:
            ValueError: If FIREBASE_DATABASE is unset or a value is invalid
        """
        database = os.getenv("FIREBASE_DATABASE")
        if not database:
            raise ValueError("FIREBASE_DATABASE environment variable is not set")

        config = cls(database=database, base_path=os.getenv("FIREBASE_BASE_PATH", ""))
        if timeout := os.getenv("FIREBASE_TIMEOUT"):
            config.timeout = Timeout.parse(timeout)
        if write_size_limit := os.getenv("FIREBASE_WRITE_SIZE_LIMIT"):
            config.write_size_limit = WriteSizeLimit(write_size_limit.lower())
        return config
