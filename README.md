# kabtrace

Tools for looking inside EVM transaction execution. The package uses only the
standard library.

- `kabtrace.events`: the execution events (`Step`, `StepResult`, `RecordCost`,
  `CallEvent`, ...) and an `EventBus` that delivers them to listeners.
- `kabtrace.raw`: `RawTracer` builds a per-opcode step log.
- `kabtrace.call_list`: `CallListTracer` builds a flat list of internal calls,
  creates and self-destructs.
- `kabtrace.trace_request`: `FilterRequest` holds the parameters of a
  `trace_filter` request and is parsed from its JSON object.
- `kabtrace.trace_filter`: `TraceFilter` answers such requests over a block range.
  It filters by sender and recipient and pages results with `after` and `count`.
- `kabtrace.trace_cache`: `TraceCache` is the batch-aware cache of replayed block
  traces that `TraceFilter` reads from.
- `kabtrace.debug`: `TraceParams` and `select_trace_type` pick the trace type for
  a `debug_traceTransaction` request. The module also provides `xxh64` and `twox_128`.
- `kabtrace.txpool`: `content`, `inspect` and `status` build the `txpool_content`,
  `txpool_inspect` and `txpool_status` shapes.
- `kabtrace.opcodes`: opcode names and memory chunking.
- `kabtrace.conviction`: vote conviction.
- `kabtrace.cli_opt`: RPC option values.

## Installation

```
pip install kabtrace
```

To run the tests:

```
pip install "kabtrace[test]"
pytest
```

## Tracing execution

A tracer subscribes to an `EventBus` only while the traced function runs. The code
that executes the transaction emits its events on that bus.

```python
from kabtrace.events import EventBus
from kabtrace.call_list import CallListTracer
from kabtrace.raw import RawTracer

bus = EventBus()

tracer = CallListTracer()
result = tracer.trace(bus, run_transaction)   # run_transaction emits events on bus
entries = tracer.into_tx_trace()              # list of CallEntry, in opening order

raw = RawTracer(disable_storage=False, disable_memory=True, disable_stack=False)
raw.trace(bus, run_transaction)
trace = raw.into_tx_trace()                   # RawTrace(step_logs, gas, return_value)
```

A tracer can also receive events directly through its `handle(event)` method.
Events it does not use are ignored.

## Filtering traces

`TraceFilter` needs two things:

- a chain object with a `best_number` attribute and a `block_hash(height)` method
  that returns the block hash, or `None` for an unknown height;
- a cache.

A `TraceCache` serves as the cache. It takes a `replay(block_hash)` callable that
returns the block's `BlockTrace` list.

```python
from kabtrace.trace_cache import TraceCache
from kabtrace.trace_filter import TraceFilter
from kabtrace.trace_request import FilterRequest

cache = TraceCache(replay=replay_block, cache_duration=60.0)
handler = TraceFilter(chain, cache, max_count=500)

request = FilterRequest.from_dict({"fromBlock": "0x1", "toBlock": "latest", "count": 10})
traces = handler.filter(request)
```

How a request is answered:

- Block ids may be numbers written in hex with `0x` or in decimal, or one of the
  tags `earliest`, `latest` and `pending`.
- `pending` raises `TraceError`. So does a `count` above `max_count`.
- If `count` is left out and the matching traces reach `max_count`, the request
  raises `TraceError` as well.
- The genesis block is skipped.
- Cached traces whose error is `execution reverted` are reported as `Reverted`.
- A block stays cached while a batch uses it, and then for `cache_duration`
  seconds after the batch stops.

## Debug trace type

```python
from kabtrace.debug import TraceParams, select_trace_type

select_trace_type(TraceParams.from_dict({"disableStorage": True}))
# RawTraceType(disable_storage=True, disable_memory=False, disable_stack=False)
```

With no parameters the result is a full `RawTraceType`. Given the Blockscout
javascript tracer, `select_trace_type` returns `CallListTraceType`. Any other
tracer raises `DebugError`.

## Transaction pool

```python
from kabtrace.txpool import PoolTransaction, content, inspect, status

txn = PoolTransaction(
    hash=bytes(32), sender=bytes.fromhex("11" * 20), nonce=0,
    gas_price=1, gas_limit=21000, to=bytes.fromhex("22" * 20), value=1000,
)
content([txn], []).pending[txn.sender][0].to_json()   # camelCase JSON object
inspect([txn], []).pending[txn.sender][0].to_json()
# "0x2222...2222: 1000 wei + 21000 gas x 1 wei"
status(2, 1)                                           # TxPoolResult(pending=2, queued=1)
```

Transactions whose sender is unknown are listed under the zero address.

## Other helpers

```python
from kabtrace.opcodes import opcode_name, convert_memory
from kabtrace.conviction import Conviction
from kabtrace.cli_opt import EthApi

opcode_name(0x55)                        # "SStore"
convert_memory(b"\x01" * 40)             # two 32-byte words, the last one left-padded
Conviction.from_int(3).lock_periods()    # 4
Conviction.LOCKED_2X.votes(100, max_value=2**128 - 1)   # Delegations(votes=200, capital=100)
EthApi.parse("trace")                    # EthApi.TRACE
```

## What the package does not do

The package has no EVM, no chain access and no RPC server. It provides no command.

- The events that the tracers consume must be emitted by your execution engine.
- Block hashes must come from your chain object.
- Block replays must come from the `replay` callable you give `TraceCache`.
- `debug` only chooses a trace type; it does not replay the transaction.
- `txpool` does not read a pool or recover transaction senders; it formats the
  entries you pass in.