import pytest

from kabtrace.call_list import (
    CallInner,
    CallListTracer,
    CreateInner,
    SelfDestructInner,
    error_message,
)
from kabtrace.events import (
    CallEvent,
    CreateEvent,
    EventBus,
    Exit,
    ExitKind,
    ExitReason,
    RecordCost,
    RecordTransaction,
    StepResult,
    SuicideEvent,
    Trap,
)
from kabtrace.opcodes import CallType

A = b"\x01" * 20
B = b"\x02" * 20
C = b"\x03" * 20


def exit_with(kind, detail="", value=b""):
    return StepResult(Exit(ExitReason(kind, detail)), value)


def call(caller=A, to=B, is_static=False, value=0, data=b""):
    return CallEvent(caller=caller, address=to, apparent_value=value, input=data, is_static=is_static)


def test_root_call_includes_transaction_cost():
    tracer = CallListTracer()
    for event in [
        RecordTransaction(cost=21000),
        call(value=5, data=b"\xfd"),
        RecordCost(cost=3, gas=1000),
        RecordCost(cost=3, gas=900),
        exit_with(ExitKind.SUCCEED, "returned", b"\x0d"),
    ]:
        tracer.handle(event)
    [entry] = tracer.into_tx_trace()
    assert entry.from_address == A
    assert entry.value == 5
    assert entry.gas == 900
    assert entry.gas_used == (1000 - 900) + 21000
    assert entry.trace_address == []
    assert isinstance(entry.inner, CallInner)
    assert entry.inner.call_type is CallType.CALL
    assert entry.inner.to == B
    assert entry.inner.input == b"\xfd"
    assert entry.inner.res.success
    assert entry.inner.res.data == b"\x0d"


def test_static_root_call():
    tracer = CallListTracer()
    for event in [call(is_static=True), RecordCost(1, 50), exit_with(ExitKind.SUCCEED, "stopped", b"zz")]:
        tracer.handle(event)
    [entry] = tracer.into_tx_trace()
    assert entry.inner.call_type is CallType.STATIC_CALL
    assert entry.inner.res.data == b""


def test_nested_call_uses_trap_type_and_trace_address():
    tracer = CallListTracer()
    for event in [
        RecordTransaction(cost=7),
        call(),
        RecordCost(1, 500),
        StepResult(Trap(0xF4)),
        call(caller=B, to=C),
        RecordCost(1, 300),
        RecordCost(1, 250),
        exit_with(ExitKind.SUCCEED, "returned", b"ok"),
        RecordCost(1, 200),
        exit_with(ExitKind.SUCCEED, "stopped"),
    ]:
        tracer.handle(event)
    root, child = tracer.into_tx_trace()
    assert root.subtraces == 1
    assert root.trace_address == []
    assert child.trace_address == [0]
    assert child.inner.call_type is CallType.DELEGATE_CALL
    assert child.gas_used == 300 - 250
    assert child.from_address == B


def test_revert_and_error_messages():
    tracer = CallListTracer()
    for event in [call(), RecordCost(1, 10), exit_with(ExitKind.REVERT)]:
        tracer.handle(event)
    assert tracer.into_tx_trace()[0].inner.res.data == b"execution reverted"
    assert not tracer.into_tx_trace()[0].inner.res.success

    tracer = CallListTracer()
    for event in [call(), RecordCost(1, 10), exit_with(ExitKind.ERROR, "OutOfGas")]:
        tracer.handle(event)
    assert tracer.into_tx_trace()[0].inner.res.data == b"out of gas"


def test_create_success_and_fatal():
    tracer = CallListTracer()
    for event in [
        CreateEvent(caller=A, address=C, value=9, init_code=b"\x60\x00"),
        RecordCost(1, 100),
        exit_with(ExitKind.SUCCEED, "returned", b"\xaa\xbb"),
    ]:
        tracer.handle(event)
    [entry] = tracer.into_tx_trace()
    assert isinstance(entry.inner, CreateInner)
    assert entry.inner.init == b"\x60\x00"
    assert entry.inner.res.success
    assert entry.inner.res.address == C
    assert entry.inner.res.code == b"\xaa\xbb"

    tracer = CallListTracer()
    for event in [CreateEvent(caller=A, address=C, value=0, init_code=b""), RecordCost(1, 1), exit_with(ExitKind.FATAL)]:
        tracer.handle(event)
    res = tracer.into_tx_trace()[0].inner.res
    assert not res.success
    assert res.error == b""


def test_suicide_inside_call():
    tracer = CallListTracer()
    for event in [
        call(),
        RecordCost(1, 40),
        SuicideEvent(address=B, target=C, balance=77),
        exit_with(ExitKind.SUCCEED, "suicided"),
    ]:
        tracer.handle(event)
    root, destruct = tracer.into_tx_trace()
    assert root.subtraces == 1
    assert destruct.from_address == B
    assert destruct.trace_address == [0]
    assert destruct.inner == SelfDestructInner(refund_address=C, balance=77)
    assert destruct.gas_used == 0


def test_exit_without_gas_record_raises():
    tracer = CallListTracer()
    tracer.handle(call())
    with pytest.raises(RuntimeError):
        tracer.handle(exit_with(ExitKind.SUCCEED, "stopped"))


def test_trace_through_bus():
    bus = EventBus()
    tracer = CallListTracer()

    def run():
        bus.emit(call())
        bus.emit(RecordCost(1, 60))
        bus.emit(exit_with(ExitKind.SUCCEED, "stopped"))
        return "done"

    assert tracer.trace(bus, run) == "done"
    assert len(tracer.into_tx_trace()) == 1
    bus.emit(call())
    assert len(tracer.into_tx_trace()) == 1


@pytest.mark.parametrize(
    "name,expected",
    [
        ("StackUnderflow", b"stack underflow"),
        ("OutOfFund", b"out of funds"),
        ("CreateContractLimit", b"create contract limit"),
        ("custom failure", b"custom failure"),
        ("", b"unexpected error"),
    ],
)
def test_error_message(name, expected):
    assert error_message(name) == expected