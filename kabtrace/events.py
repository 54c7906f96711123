"""Events emitted by the EVM during execution, and a bus to deliver them.

Addresses and 256-bit words are ``bytes``; amounts and gas are ``int``.
"""

from __future__ import annotations

import contextlib
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Union


class ExitKind(enum.Enum):
    """Broad category of a context exit."""

    SUCCEED = "succeed"
    ERROR = "error"
    REVERT = "revert"
    FATAL = "fatal"


@dataclass(frozen=True)
class ExitReason:
    """Why a context exited.

    ``detail`` refines the kind: for SUCCEED one of "returned", "stopped" or
    "suicided"; for ERROR the error name (e.g. "OutOfGas") or a free-form
    message; otherwise free text.
    """

    kind: ExitKind
    detail: str = ""


@dataclass(frozen=True)
class Exit:
    """A step ended its context."""

    reason: ExitReason


@dataclass(frozen=True)
class Trap:
    """A step trapped on an opcode that needs outside handling."""

    opcode: int


# Gasometer events. ``gas`` is the remaining gas in the snapshot.


@dataclass(frozen=True)
class RecordCost:
    cost: int
    gas: int


@dataclass(frozen=True)
class RecordDynamicCost:
    gas_cost: int
    gas: int
    memory_gas: int = 0
    gas_refund: int = 0


@dataclass(frozen=True)
class RecordStipend:
    stipend: int
    gas: int


@dataclass(frozen=True)
class RecordTransaction:
    cost: int
    gas: int = 0


# Runtime events.


@dataclass(frozen=True)
class Step:
    """An opcode is about to execute in the context at ``address``."""

    address: bytes
    opcode: int
    position: int | None
    stack: list[bytes] = field(default_factory=list)
    memory: bytes = b""


@dataclass(frozen=True)
class StepResult:
    """Outcome of a step; ``result`` is None when execution simply continues."""

    result: Exit | Trap | None
    return_value: bytes = b""


@dataclass(frozen=True)
class SLoad:
    address: bytes
    index: bytes
    value: bytes


@dataclass(frozen=True)
class SStore:
    address: bytes
    index: bytes
    value: bytes


# EVM events.


@dataclass(frozen=True)
class CallEvent:
    """A message call begins."""

    caller: bytes
    address: bytes
    apparent_value: int
    input: bytes
    is_static: bool
    code_address: bytes | None = None
    target_gas: int | None = None


@dataclass(frozen=True)
class CreateEvent:
    """A contract creation begins."""

    caller: bytes
    address: bytes
    value: int
    init_code: bytes
    target_gas: int | None = None


@dataclass(frozen=True)
class SuicideEvent:
    """A contract self-destructs, sending its balance to ``target``."""

    address: bytes
    target: bytes
    balance: int


GasometerEvent = Union[RecordCost, RecordDynamicCost, RecordStipend, RecordTransaction]
RuntimeEvent = Union[Step, StepResult, SLoad, SStore]
EvmEvent = Union[CallEvent, CreateEvent, SuicideEvent]

Listener = Callable[[Any], None]


class EventBus:
    """Delivers emitted events to every subscribed listener, in subscription order."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """Remove a listener; raise ValueError if it is not subscribed."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            raise ValueError("listener is not subscribed") from None

    def emit(self, event: Any) -> None:
        for listener in list(self._listeners):
            listener(event)

    @contextlib.contextmanager
    def listening(self, listener: Listener) -> Iterator[EventBus]:
        """Subscribe ``listener`` for the duration of the block."""
        self.subscribe(listener)
        try:
            yield self
        finally:
            self.unsubscribe(listener)