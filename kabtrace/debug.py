"""Parameters and trace-type selection for ``debug_traceTransaction``."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Mapping, Union

_MASK = (1 << 64) - 1
_P1 = 11400714785074694791
_P2 = 14029467366897019727
_P3 = 1609587929392839161
_P4 = 9650029242287828579
_P5 = 2870177450012600261

STRIPE = 32

# twox_128 of the only javascript tracer that is understood (Blockscout's).
BLOCKSCOUT_TRACER_HASH = bytes.fromhex("94d9f08796f91eb13a2e82a6066882f7")


class DebugError(Exception):
    """A debug trace request could not be served."""


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK
    return (_rotl(acc, 31) * _P1) & _MASK


def _merge(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _P1 + _P4) & _MASK


def xxh64(data: bytes, seed: int = 0) -> int:
    """64-bit xxHash of ``data`` with the given seed."""
    data = bytes(data)
    length = len(data)
    seed &= _MASK
    body = length - length % STRIPE

    if length >= STRIPE:
        v1 = (seed + _P1 + _P2) & _MASK
        v2 = (seed + _P2) & _MASK
        v3 = seed
        v4 = (seed - _P1) & _MASK
        for a, b, c, d in struct.iter_unpack("<4Q", data[:body]):
            v1 = _round(v1, a)
            v2 = _round(v2, b)
            v3 = _round(v3, c)
            v4 = _round(v4, d)
        acc = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK
        for v in (v1, v2, v3, v4):
            acc = _merge(acc, v)
    else:
        acc = (seed + _P5) & _MASK

    acc = (acc + length) & _MASK
    tail = memoryview(data)[body:]

    while len(tail) >= 8:
        (lane,) = struct.unpack_from("<Q", tail)
        acc ^= _round(0, lane)
        acc = (_rotl(acc, 27) * _P1 + _P4) & _MASK
        tail = tail[8:]
    if len(tail) >= 4:
        (word,) = struct.unpack_from("<I", tail)
        acc ^= (word * _P1) & _MASK
        acc = (_rotl(acc, 23) * _P2 + _P3) & _MASK
        tail = tail[4:]
    for byte in tail:
        acc ^= (byte * _P5) & _MASK
        acc = (_rotl(acc, 11) * _P1) & _MASK

    acc ^= acc >> 33
    acc = (acc * _P2) & _MASK
    acc ^= acc >> 29
    acc = (acc * _P3) & _MASK
    acc ^= acc >> 32
    return acc


def twox_128(data: bytes) -> bytes:
    """128-bit hash: xxh64 with seeds 0 and 1, each little-endian, concatenated."""
    return b"".join(xxh64(data, seed).to_bytes(8, "little") for seed in (0, 1))


def _optional(data: Mapping[str, Any], key: str, kind: type) -> Any:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, kind):
        raise ValueError(f"invalid value for {key}: {value!r}")
    return value


@dataclass(frozen=True)
class TraceParams:
    """Options of a ``debug_traceTransaction`` request."""

    disable_storage: bool | None = None
    disable_memory: bool | None = None
    disable_stack: bool | None = None
    # Javascript tracer; only the Blockscout tracer is recognised.
    tracer: str | None = None
    timeout: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TraceParams:
        """Build parameters from their JSON object (camelCase keys)."""
        if not isinstance(data, Mapping):
            raise ValueError(f"expected an object, got {data!r}")
        return cls(
            disable_storage=_optional(data, "disableStorage", bool),
            disable_memory=_optional(data, "disableMemory", bool),
            disable_stack=_optional(data, "disableStack", bool),
            tracer=_optional(data, "tracer", str),
            timeout=_optional(data, "timeout", str),
        )


@dataclass(frozen=True)
class RawTraceType:
    """Per-opcode tracing, with parts of the machine state optionally left out."""

    disable_storage: bool = False
    disable_memory: bool = False
    disable_stack: bool = False


@dataclass(frozen=True)
class CallListTraceType:
    """Tracing of the internal transactions only."""


TraceType = Union[RawTraceType, CallListTraceType]


def select_trace_type(params: TraceParams | None) -> TraceType:
    """Choose how to trace a transaction from the request parameters."""
    if params is None:
        return RawTraceType()
    if params.tracer is not None:
        tracer_hash = twox_128(params.tracer.encode())
        if tracer_hash == BLOCKSCOUT_TRACER_HASH:
            return CallListTraceType()
        raise DebugError(
            f"javascript based tracing is not available (hash :0x{tracer_hash.hex()})"
        )
    return RawTraceType(
        disable_storage=bool(params.disable_storage),
        disable_memory=bool(params.disable_memory),
        disable_stack=bool(params.disable_stack),
    )