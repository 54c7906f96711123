"""Parameters of a ``trace_filter`` request."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any, Mapping, Union

U32_MAX = 0xFFFFFFFF
ADDRESS_SIZE = 20

_HEX_DIGITS = re.compile(r"\+?[0-9a-fA-F]+")
_DEC_DIGITS = re.compile(r"\+?[0-9]+")


class RequestBlockTag(enum.Enum):
    """Symbolic block reference."""

    EARLIEST = "earliest"
    LATEST = "latest"
    PENDING = "pending"


BlockId = Union[int, RequestBlockTag]


def parse_u32(text: str) -> int:
    """Parse a u32 written in hex with a ``0x`` prefix, or in decimal without one."""
    if text.startswith("0x"):
        digits, pattern, base = text[2:], _HEX_DIGITS, 16
    else:
        digits, pattern, base = text, _DEC_DIGITS, 10
    if not pattern.fullmatch(digits):
        raise ValueError(f"parsing error: invalid digit from '{text}'")
    value = int(digits, base)
    if value > U32_MAX:
        raise ValueError(f"parsing error: number too large from '{text}'")
    return value


def parse_block_id(value: Any) -> BlockId:
    """Parse a block id: a number string (hex or decimal) or a tag name."""
    if isinstance(value, str):
        try:
            return parse_u32(value)
        except ValueError:
            pass
        try:
            return RequestBlockTag(value)
        except ValueError:
            pass
    raise ValueError(
        f"data did not match any variant of untagged enum RequestBlockId: {value!r}"
    )


def _parse_address(value: Any) -> bytes:
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ValueError(f"invalid address: {value!r}")
    digits = value[2:]
    if len(digits) != 2 * ADDRESS_SIZE or not _HEX_DIGITS.fullmatch(digits) or "+" in digits:
        raise ValueError(f"invalid address: {value!r}")
    return bytes.fromhex(digits)


def _parse_addresses(value: Any) -> list[bytes] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"expected a list of addresses, got {value!r}")
    return [_parse_address(item) for item in value]


def _parse_optional_u32(name: str, value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= U32_MAX:
        raise ValueError(f"invalid value for {name}: {value!r}")
    return value


def _parse_optional_block(value: Any) -> BlockId | None:
    return None if value is None else parse_block_id(value)


@dataclass(frozen=True)
class FilterRequest:
    """Which traces to return: block range, addresses and pagination."""

    from_block: BlockId | None = None
    to_block: BlockId | None = None
    from_address: list[bytes] | None = None
    to_address: list[bytes] | None = None
    after: int | None = None
    count: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FilterRequest:
        """Build a request from its JSON object (camelCase keys); unknown keys are ignored."""
        if not isinstance(data, Mapping):
            raise ValueError(f"expected an object, got {data!r}")
        return cls(
            from_block=_parse_optional_block(data.get("fromBlock")),
            to_block=_parse_optional_block(data.get("toBlock")),
            from_address=_parse_addresses(data.get("fromAddress")),
            to_address=_parse_addresses(data.get("toAddress")),
            after=_parse_optional_u32("after", data.get("after")),
            count=_parse_optional_u32("count", data.get("count")),
        )