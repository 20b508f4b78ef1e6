"""
O8 Configuration

Content store settings, read from the environment. The CLI loads a ``.env``
file (python-dotenv) before calling ``StoreConfig.from_env``.

Environment variables:
    O8_IPFS_API_URL       IPFS HTTP API (default: http://127.0.0.1:5001)
    O8_IPFS_GATEWAY       Public gateway (default: https://ipfs.io)
    O8_TIMEOUT            Per-attempt timeout in seconds (default: 30)
    O8_RETRIES            Attempt budget for publish/fetch (default: 3)
    O8_RETRY_BASE_DELAY   Backoff base delay in seconds (default: 1)
    O8_EXISTS_TIMEOUT     Timeout of an existence probe in seconds (default: 10)
"""

from dataclasses import dataclass
import os
from typing import Mapping, Optional

from o8.core.ids import DEFAULT_GATEWAY


DEFAULT_API_URL = "http://127.0.0.1:5001"


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class StoreConfig:
    """
    Content store client settings.

    Attributes:
        api_url: IPFS HTTP API used for add/pin
        gateway_url: Gateway used for fetch and existence probes
        timeout: Seconds allowed for one network attempt
        retries: Maximum attempts for publish and fetch
        base_delay: Backoff base in seconds (delay = base_delay * 2**attempt)
        exists_timeout: Seconds allowed for one existence probe
    """
    api_url: str = DEFAULT_API_URL
    gateway_url: str = DEFAULT_GATEWAY
    timeout: float = 30.0
    retries: int = 3
    base_delay: float = 1.0
    exists_timeout: float = 10.0

    def __post_init__(self):
        if self.retries < 1:
            raise ValueError("retries must be at least 1")
        if self.timeout <= 0 or self.exists_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "StoreConfig":
        """
        Build a configuration from environment variables.

        Args:
            env: Mapping to read instead of ``os.environ``

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if env is None else env
        return cls(
            api_url=env.get("O8_IPFS_API_URL") or DEFAULT_API_URL,
            gateway_url=env.get("O8_IPFS_GATEWAY") or DEFAULT_GATEWAY,
            timeout=_number(env, "O8_TIMEOUT", 30.0, float),
            retries=_number(env, "O8_RETRIES", 3, int),
            base_delay=_number(env, "O8_RETRY_BASE_DELAY", 1.0, float),
            exists_timeout=_number(env, "O8_EXISTS_TIMEOUT", 10.0, float),
        )

    def to_dict(self) -> dict:
        return {
            "api_url": self.api_url,
            "gateway_url": self.gateway_url,
            "timeout": self.timeout,
            "retries": self.retries,
            "base_delay": self.base_delay,
            "exists_timeout": self.exists_timeout,
        }
