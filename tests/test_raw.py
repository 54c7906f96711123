from kabtrace.events import (
    EventBus,
    Exit,
    ExitKind,
    ExitReason,
    RecordCost,
    RecordDynamicCost,
    RecordTransaction,
    SLoad,
    SStore,
    Step,
    StepResult,
    Trap,
)
from kabtrace.opcodes import convert_memory
from kabtrace.raw import RawTracer

A = b"\x0a" * 20
B = b"\x0b" * 20
K1 = b"\x01".rjust(32, b"\x00")
K3 = b"\x03".rjust(32, b"\x00")
V1 = b"\x11" * 32
V3 = b"\x33" * 32
V9 = b"\x99" * 32
WORD = b"\x07".rjust(32, b"\x00")


def run(tracer, events):
    for event in events:
        tracer.handle(event)
    return tracer.into_tx_trace()


def test_single_step_log():
    memory = b"\x01" * 33
    trace = run(RawTracer(), [
        RecordTransaction(cost=21000),
        Step(address=A, opcode=0x55, position=230, stack=[WORD], memory=memory),
        RecordCost(cost=20000, gas=62841),
        SStore(A, K1, V1),
        StepResult(None),
        Step(address=A, opcode=0xF3, position=231),
        StepResult(Exit(ExitReason(ExitKind.SUCCEED, "returned")), b"\xde\xad"),
    ])
    first = trace.step_logs[0]
    assert first.op == "SStore"
    assert first.pc == 230
    assert first.depth == 1
    assert first.gas == 62841
    assert first.gas_cost == 20000
    assert first.stack == [WORD]
    assert first.memory == convert_memory(memory)
    assert first.storage == {K1: V1}
    assert trace.step_logs[1].op == "Return"
    assert trace.return_value == b"\xde\xad"
    assert trace.gas == 62841


def test_disabled_fields_are_none():
    trace = run(RawTracer(disable_storage=True, disable_memory=True, disable_stack=True), [
        RecordTransaction(cost=1),
        Step(address=A, opcode=0x54, position=None, stack=[WORD], memory=b"\x01"),
        SLoad(A, K1, V1),
        StepResult(None),
    ])
    [log] = trace.step_logs
    assert log.memory is None
    assert log.stack is None
    assert log.storage is None
    assert log.pc == 0


def test_steps_outside_context_are_ignored():
    trace = run(RawTracer(), [
        Step(address=A, opcode=0x00, position=0),
        RecordCost(cost=5, gas=100),
        StepResult(None),
    ])
    assert trace.step_logs == []
    assert trace.gas == 0


def test_dynamic_cost_recorded():
    trace = run(RawTracer(), [
        RecordTransaction(cost=1),
        Step(address=A, opcode=0x52, position=4),
        RecordDynamicCost(gas_cost=12, gas=400),
        StepResult(None),
    ])
    assert trace.step_logs[0].gas_cost == 12
    assert trace.step_logs[0].gas == 400


def nested(child_address, child_exit):
    return [
        RecordTransaction(cost=1),
        Step(address=A, opcode=0x54, position=0),
        SLoad(A, K1, V1),
        StepResult(None),
        Step(address=A, opcode=0xF4, position=1),
        StepResult(Trap(0xF4)),
        Step(address=child_address, opcode=0x55, position=0),
        SStore(child_address, K1, V9),
        SStore(child_address, K3, V3),
        StepResult(Exit(ExitReason(child_exit, "stopped"))),
        Step(address=A, opcode=0x00, position=2),
        StepResult(None),
    ]


def test_child_changes_update_parent_cache_on_same_address():
    trace = run(RawTracer(), nested(A, ExitKind.SUCCEED))
    logs = trace.step_logs
    assert [log.depth for log in logs] == [1, 1, 2, 1]
    assert logs[2].storage == {K1: V9, K3: V3}
    assert logs[3].storage == {K1: V9}


def test_reverted_child_leaves_parent_cache():
    trace = run(RawTracer(), nested(A, ExitKind.REVERT))
    assert trace.step_logs[3].storage == {K1: V1}


def test_other_address_does_not_touch_parent_cache():
    trace = run(RawTracer(), nested(B, ExitKind.SUCCEED))
    assert trace.step_logs[3].storage == {K1: V1}
    assert trace.return_value == b""


def test_trace_through_bus():
    bus = EventBus()
    tracer = RawTracer()

    def body():
        bus.emit(RecordTransaction(cost=1))
        bus.emit(Step(address=A, opcode=0x01, position=3))
        bus.emit(StepResult(None))
        return 42

    assert tracer.trace(bus, body) == 42
    assert [log.op for log in tracer.into_tx_trace().step_logs] == ["Add"]