"""Tracer that records the machine state between opcode executions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from kabtrace.events import (
    EventBus,
    Exit,
    ExitKind,
    RecordCost,
    RecordDynamicCost,
    RecordTransaction,
    SLoad,
    SStore,
    Step,
    StepResult,
    Trap,
)
from kabtrace.opcodes import context_kind, convert_memory, opcode_name

R = TypeVar("R")


@dataclass(frozen=True)
class RawStepLog:
    """Machine state recorded for one opcode."""

    depth: int
    gas: int
    gas_cost: int
    memory: list[bytes] | None
    op: str
    pc: int
    stack: list[bytes] | None
    storage: dict[bytes, bytes] | None


@dataclass(frozen=True)
class RawTrace:
    """The whole per-opcode trace of a transaction."""

    step_logs: list[RawStepLog]
    gas: int
    return_value: bytes


@dataclass
class _PendingStep:
    opcode: int
    depth: int
    position: int
    memory: bytes | None
    stack: list[bytes] | None
    gas: int = 0
    gas_cost: int = 0


@dataclass
class _Context:
    address: bytes
    storage_cache: dict[bytes, bytes] = field(default_factory=dict)
    current_step: _PendingStep | None = None
    global_storage_changes: dict[bytes, dict[bytes, bytes]] = field(default_factory=dict)


class RawTracer:
    """Listens to gasometer and runtime events and logs every step."""

    def __init__(
        self,
        disable_storage: bool = False,
        disable_memory: bool = False,
        disable_stack: bool = False,
    ) -> None:
        self.disable_storage = disable_storage
        self.disable_memory = disable_memory
        self.disable_stack = disable_stack
        self.step_logs: list[RawStepLog] = []
        self.return_value = b""
        self.final_gas = 0
        self._new_context = False
        self._stack: list[_Context] = []

    def trace(self, bus: EventBus, func: Callable[[], R]) -> R:
        """Listen to ``bus`` while running ``func`` and return its result."""
        with bus.listening(self.handle):
            return func()

    def into_tx_trace(self) -> RawTrace:
        return RawTrace(step_logs=list(self.step_logs), gas=self.final_gas, return_value=self.return_value)

    def handle(self, event: Any) -> None:
        """Process one event; unknown events are ignored."""
        if isinstance(event, RecordTransaction):
            self._new_context = True
        elif isinstance(event, RecordCost):
            self._record_cost(event.cost, event.gas)
        elif isinstance(event, RecordDynamicCost):
            self._record_cost(event.gas_cost, event.gas)
        elif isinstance(event, Step):
            self._step(event)
        elif isinstance(event, StepResult):
            self._step_result(event)
        elif isinstance(event, (SLoad, SStore)):
            if self._stack and not self.disable_storage:
                self._stack[-1].storage_cache[event.index] = event.value

    def _record_cost(self, cost: int, gas: int) -> None:
        # Costs outside a Step/StepResult pair are ignored.
        if self._stack and self._stack[-1].current_step is not None:
            step = self._stack[-1].current_step
            step.gas = gas
            step.gas_cost = cost
            self.final_gas = gas

    def _step(self, event: Step) -> None:
        if self._new_context:
            self._new_context = False
            self._stack.append(_Context(address=event.address))
        if not self._stack:
            return
        self._stack[-1].current_step = _PendingStep(
            opcode=event.opcode,
            depth=len(self._stack),
            position=event.position if event.position is not None else 0,
            memory=None if self.disable_memory else bytes(event.memory),
            stack=None if self.disable_stack else list(event.stack),
        )

    def _step_result(self, event: StepResult) -> None:
        if self._stack and self._stack[-1].current_step is not None:
            context = self._stack[-1]
            step = context.current_step
            context.current_step = None
            self.step_logs.append(RawStepLog(
                depth=step.depth,
                gas=step.gas,
                gas_cost=step.gas_cost,
                memory=None if step.memory is None else convert_memory(step.memory),
                op=opcode_name(step.opcode),
                pc=step.position,
                stack=step.stack,
                storage=None if self.disable_storage else dict(sorted(context.storage_cache.items())),
            ))

        result = event.result
        if isinstance(result, Exit):
            self._exit_context(result, bytes(event.return_value))
        elif isinstance(result, Trap) and context_kind(result.opcode) is not None:
            self._new_context = True

    def _exit_context(self, result: Exit, return_value: bytes) -> None:
        if not self._stack:
            return
        context = self._stack.pop()
        if not self._stack:
            self.return_value = return_value
            return
        if self.disable_storage or result.reason.kind is not ExitKind.SUCCEED:
            return
        parent = self._stack[-1]
        context.global_storage_changes[context.address] = context.storage_cache
        for address, storage in context.global_storage_changes.items():
            if address == parent.address:
                # Only keys the parent already tracks are refreshed.
                for key in parent.storage_cache:
                    if key in storage:
                        parent.storage_cache[key] = storage.pop(key)
            else:
                parent.global_storage_changes.setdefault(address, {}).update(storage)