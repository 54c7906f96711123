"""Tracer that lists the internal transactions (calls, creates, self-destructs)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar, Union

from kabtrace.events import (
    CallEvent,
    CreateEvent,
    EventBus,
    Exit,
    ExitKind,
    ExitReason,
    RecordCost,
    RecordDynamicCost,
    RecordStipend,
    RecordTransaction,
    StepResult,
    SuicideEvent,
    Trap,
)
from kabtrace.opcodes import CallType, ContextKind, call_type_for, context_kind

R = TypeVar("R")

REVERTED = b"execution reverted"

_ERROR_MESSAGES = {
    "StackUnderflow": "stack underflow",
    "StackOverflow": "stack overflow",
    "InvalidJump": "invalid jump",
    "InvalidRange": "invalid range",
    "DesignatedInvalid": "designated invalid",
    "CallTooDeep": "call too deep",
    "CreateCollision": "create collision",
    "CreateContractLimit": "create contract limit",
    "OutOfOffset": "out of offset",
    "OutOfGas": "out of gas",
    "OutOfFund": "out of funds",
}


def error_message(error: str) -> bytes:
    """Human-readable message for an EVM error name or free-form error text."""
    if not error:
        return b"unexpected error"
    return _ERROR_MESSAGES.get(error, error).encode()


@dataclass(frozen=True)
class CallResult:
    """Outcome of a message call: returned output, or an error message."""

    success: bool
    data: bytes = b""


@dataclass(frozen=True)
class CreateResult:
    """Outcome of a contract creation."""

    success: bool
    address: bytes = b""
    code: bytes = b""
    error: bytes = b""


@dataclass(frozen=True)
class CallInner:
    call_type: CallType
    to: bytes
    input: bytes
    res: CallResult


@dataclass(frozen=True)
class CreateInner:
    init: bytes
    res: CreateResult


@dataclass(frozen=True)
class SelfDestructInner:
    refund_address: bytes
    balance: int


Inner = Union[CallInner, CreateInner, SelfDestructInner]


@dataclass(frozen=True)
class CallEntry:
    """One internal transaction of the trace."""

    from_address: bytes
    trace_address: list[int]
    subtraces: int
    value: int
    gas: int
    gas_used: int
    inner: Inner


@dataclass
class _Context:
    entries_index: int
    kind: ContextKind
    call_type: CallType | None
    from_address: bytes
    trace_address: list[int]
    value: int
    data: bytes
    to: bytes
    subtraces: int = 0
    gas: int = 0
    start_gas: int | None = None


class CallListTracer:
    """Listens to EVM events and builds the flat list of internal transactions."""

    def __init__(self) -> None:
        self.transaction_cost = 0
        self.entries: dict[int, CallEntry] = {}
        self._next_index = 0
        self._stack: list[_Context] = []
        # Type of the next call, learnt from call traps; None means the root call.
        self._call_type: CallType | None = None

    def trace(self, bus: EventBus, func: Callable[[], R]) -> R:
        """Listen to ``bus`` while running ``func`` and return its result."""
        with bus.listening(self.handle):
            return func()

    def into_tx_trace(self) -> list[CallEntry]:
        """The recorded entries, ordered by the index they were opened at."""
        return [entry for _, entry in sorted(self.entries.items())]

    def handle(self, event: Any) -> None:
        """Process one event; unknown events are ignored."""
        if isinstance(event, (RecordCost, RecordDynamicCost, RecordStipend)):
            self._record_gas(event.gas)
        elif isinstance(event, RecordTransaction):
            self.transaction_cost = event.cost
        elif isinstance(event, StepResult):
            self._step_result(event)
        elif isinstance(event, (CallEvent, CreateEvent, SuicideEvent)):
            self._evm_event(event)

    def _record_gas(self, gas: int) -> None:
        if self._stack:
            context = self._stack[-1]
            if context.start_gas is None:
                context.start_gas = gas
            context.gas = gas

    def _step_result(self, event: StepResult) -> None:
        result = event.result
        if isinstance(result, Trap):
            if context_kind(result.opcode) is ContextKind.CALL:
                self._call_type = call_type_for(result.opcode)
        elif isinstance(result, Exit) and self._stack:
            context = self._stack.pop()
            if context.start_gas is None:
                raise RuntimeError("context exited without any gas record")
            gas_used = context.start_gas - context.gas
            if context.entries_index == 0:
                gas_used += self.transaction_cost
            self.entries[context.entries_index] = CallEntry(
                from_address=context.from_address,
                trace_address=context.trace_address,
                subtraces=context.subtraces,
                value=context.value,
                gas=context.gas,
                gas_used=gas_used,
                inner=_inner_for(context, result.reason, bytes(event.return_value)),
            )

    def _evm_event(self, event: CallEvent | CreateEvent | SuicideEvent) -> None:
        if self._stack:
            parent = self._stack[-1]
            trace_address = [*parent.trace_address, parent.subtraces]
            parent.subtraces += 1
        else:
            trace_address = []

        if isinstance(event, CallEvent):
            if self._call_type is not None:
                call_type = self._call_type
            elif event.is_static:
                call_type = CallType.STATIC_CALL
            else:
                call_type = CallType.CALL
            self._stack.append(_Context(
                entries_index=self._next_index,
                kind=ContextKind.CALL,
                call_type=call_type,
                from_address=event.caller,
                trace_address=trace_address,
                value=event.apparent_value,
                data=bytes(event.input),
                to=event.address,
            ))
        elif isinstance(event, CreateEvent):
            self._stack.append(_Context(
                entries_index=self._next_index,
                kind=ContextKind.CREATE,
                call_type=None,
                from_address=event.caller,
                trace_address=trace_address,
                value=event.value,
                data=bytes(event.init_code),
                to=event.address,
            ))
        else:
            self.entries[self._next_index] = CallEntry(
                from_address=event.address,
                trace_address=trace_address,
                subtraces=0,
                value=0,
                gas=0,
                gas_used=0,
                inner=SelfDestructInner(refund_address=event.target, balance=event.balance),
            )
        self._next_index += 1


def _inner_for(context: _Context, reason: ExitReason, return_value: bytes) -> Inner:
    if context.kind is ContextKind.CALL:
        if reason.kind is ExitKind.SUCCEED:
            output = return_value if reason.detail == "returned" else b""
            res = CallResult(success=True, data=output)
        elif reason.kind is ExitKind.ERROR:
            res = CallResult(success=False, data=error_message(reason.detail))
        elif reason.kind is ExitKind.REVERT:
            res = CallResult(success=False, data=REVERTED)
        else:
            res = CallResult(success=False, data=b"")
        assert context.call_type is not None
        return CallInner(call_type=context.call_type, to=context.to, input=context.data, res=res)

    if reason.kind is ExitKind.SUCCEED:
        cres = CreateResult(success=True, address=context.to, code=return_value)
    elif reason.kind is ExitKind.ERROR:
        cres = CreateResult(success=False, error=error_message(reason.detail))
    elif reason.kind is ExitKind.REVERT:
        cres = CreateResult(success=False, error=REVERTED)
    else:
        cres = CreateResult(success=False, error=b"")
    return CreateInner(init=context.data, res=cres)