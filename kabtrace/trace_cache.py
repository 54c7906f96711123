"""Cache of replayed block traces shared between ``trace_filter`` requests.

Blocks are grouped in batches. A block stays cached while a batch uses it,
and for an expiration delay after the last batch using it has stopped, so
that paginated requests do not replay the same blocks again and again.
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from typing import Callable, Union

from kabtrace.trace_filter import BlockTrace

BATCH_ID_MODULUS = 1 << 64
REVERTED = b"execution reverted"
REVERTED_SHORT = b"Reverted"


class CacheError(Exception):
    """A block's traces are not available."""


@dataclass
class _Pooled:
    """Waiting to be replayed, or being replayed."""

    started: bool = False


@dataclass
class _Cached:
    """Replay finished; holds either the traces or the error."""

    traces: list[BlockTrace] | None = None
    error: CacheError | None = None


@dataclass
class _CacheBlock:
    active_batch_count: int
    state: Union[_Pooled, _Cached]


TraceResult = Union[list[BlockTrace], CacheError]


def normalize_revert(trace: BlockTrace) -> BlockTrace:
    """Return the trace with the "execution reverted" error shortened to "Reverted"."""
    if trace.error == REVERTED:
        return dataclasses.replace(trace, error=REVERTED_SHORT)
    return trace


class TraceCache:
    """Pools blocks to replay, caches their traces and cleans up expired batches.

    ``replay`` traces one block, given its hash, and returns its traces; it may
    raise ``CacheError`` for a block that cannot be traced.
    """

    def __init__(
        self,
        replay: Callable[[bytes], list[BlockTrace]],
        cache_duration: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._replay = replay
        self.cache_duration = cache_duration
        self._clock = clock
        self._blocks: dict[bytes, _CacheBlock] = {}
        self._batches: dict[int, list[bytes]] = {}
        self._next_batch_id = 0
        self._expirations: list[tuple[float, int]] = []

    def start_batch(self, blocks: list[bytes]) -> int:
        """Register a batch of blocks and return its id; unknown blocks are pooled."""
        self._expire_due()
        batch_id = self._next_batch_id
        self._batches[batch_id] = list(blocks)
        for block in blocks:
            entry = self._blocks.get(block)
            if entry is not None:
                entry.active_batch_count += 1
            else:
                self._blocks[block] = _CacheBlock(active_batch_count=1, state=_Pooled())
        self._next_batch_id = (batch_id + 1) % BATCH_ID_MODULUS
        return batch_id

    def get_traces(self, block: bytes) -> list[BlockTrace]:
        """Return the traces of a batched block, replaying it first if needed."""
        self._expire_due()
        entry = self._blocks.get(block)
        if entry is None:
            raise CacheError(f"RPC request asked a block (0x{block.hex()}) that was not batched")
        if isinstance(entry.state, _Pooled):
            self._trace(block)
            entry = self._blocks[block]
        state = entry.state
        assert isinstance(state, _Cached)
        if state.error is not None:
            raise state.error
        return list(state.traces or [])

    def stop_batch(self, batch_id: int) -> None:
        """End a batch: drop its unstarted blocks no other batch needs, start its expiry delay."""
        self._expire_due()
        for block in self._batches.get(batch_id, []):
            entry = self._blocks.get(block)
            if (
                entry is not None
                and entry.active_batch_count == 1
                and isinstance(entry.state, _Pooled)
                and not entry.state.started
            ):
                del self._blocks[block]
        self._expirations.append((self._clock() + self.cache_duration, batch_id))

    def blocking_started(self, block: bytes) -> None:
        """Mark a pooled block as being replayed, so stopping a batch keeps it."""
        entry = self._blocks.get(block)
        if entry is not None and isinstance(entry.state, _Pooled):
            entry.state.started = True

    def blocking_finished(self, block: bytes, result: TraceResult) -> None:
        """Store the outcome of a replay; ignored when the block is no longer pooled."""
        entry = self._blocks.get(block)
        if entry is None or not isinstance(entry.state, _Pooled):
            return
        if isinstance(result, CacheError):
            entry.state = _Cached(error=result)
        else:
            entry.state = _Cached(traces=list(result))

    def expired_batch(self, batch_id: int) -> None:
        """Forget a batch and remove the blocks no remaining batch uses."""
        blocks = self._batches.pop(batch_id, None)
        if blocks is None:
            return
        for block in blocks:
            entry = self._blocks.get(block)
            if entry is None:
                continue
            entry.active_batch_count -= 1
            if entry.active_batch_count == 0:
                del self._blocks[block]

    def pending_blocks(self) -> list[bytes]:
        """Blocks pooled for replay whose replay has not started."""
        return [
            block
            for block, entry in self._blocks.items()
            if isinstance(entry.state, _Pooled) and not entry.state.started
        ]

    def run_pending(self) -> list[bytes]:
        """Replay every pending block and return the blocks replayed."""
        self._expire_due()
        pending = self.pending_blocks()
        for block in pending:
            self._trace(block)
        return pending

    def _trace(self, block: bytes) -> None:
        self.blocking_started(block)
        result: TraceResult
        try:
            result = [normalize_revert(trace) for trace in self._replay(block)]
        except CacheError as exc:
            result = exc
        except Exception as exc:
            result = CacheError(f"Tracing Substrate block 0x{block.hex()} panicked : {exc!r}")
        self.blocking_finished(block, result)

    def _expire_due(self) -> None:
        now = self._clock()
        due = [batch_id for deadline, batch_id in self._expirations if deadline <= now]
        self._expirations = [item for item in self._expirations if item[0] > now]
        for batch_id in due:
            self.expired_batch(batch_id)