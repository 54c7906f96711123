"""Command-line options for the Ethereum RPC extensions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class EthApi(enum.Enum):
    """Optional Ethereum RPC namespaces that can be enabled."""

    TXPOOL = "txpool"
    DEBUG = "debug"
    TRACE = "trace"

    @classmethod
    def parse(cls, text: str) -> EthApi:
        """Parse an API name; raise ValueError for unsupported names."""
        try:
            return cls(text)
        except ValueError:
            raise ValueError(
                f"`{text}` is not recognized as a supported Ethereum Api"
            ) from None


@dataclass
class RpcConfig:
    """Settings for the enabled RPC namespaces."""

    ethapi: list[EthApi] = field(default_factory=list)
    ethapi_max_permits: int = 0
    ethapi_trace_max_count: int = 0
    ethapi_trace_cache_duration: int = 0
    max_past_logs: int = 0