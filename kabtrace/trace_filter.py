"""The ``trace_filter`` request handler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from kabtrace.trace_request import BlockId, FilterRequest, RequestBlockTag

ACTION_KINDS = frozenset({"call", "create", "suicide"})


class TraceError(Exception):
    """A trace request could not be served."""


@dataclass(frozen=True)
class TraceAction:
    """What a trace did.

    ``kind`` is "call", "create" or "suicide". For a suicide, ``from_address``
    is the self-destructing contract; ``to`` is only set for calls.
    """

    kind: str
    from_address: bytes
    to: bytes | None = None

    def __post_init__(self) -> None:
        if self.kind not in ACTION_KINDS:
            raise ValueError(f"unknown trace action kind: {self.kind!r}")


@dataclass
class BlockTrace:
    """One internal transaction of a block, as returned by ``trace_filter``."""

    action: TraceAction
    block_hash: bytes = b""
    block_number: int = 0
    transaction_hash: bytes = b""
    transaction_position: int = 0
    trace_address: list[int] = field(default_factory=list)
    subtraces: int = 0
    output: bytes = b""
    error: bytes | None = None


class _Chain(Protocol):
    best_number: int

    def block_hash(self, height: int) -> bytes | None: ...


class _Cache(Protocol):
    def start_batch(self, blocks: list[bytes]) -> Any: ...

    def get_traces(self, block: bytes) -> list[BlockTrace]: ...

    def stop_batch(self, batch_id: Any) -> None: ...


def matches_addresses(
    trace: BlockTrace,
    from_addresses: Sequence[bytes],
    to_addresses: Sequence[bytes],
) -> bool:
    """Whether a trace passes the address filters; an empty filter matches everything."""
    action = trace.action
    from_ok = not from_addresses or action.from_address in from_addresses
    if action.kind == "call":
        return from_ok and (not to_addresses or action.to in to_addresses)
    return from_ok and not to_addresses


class TraceFilter:
    """Serves ``trace_filter`` requests from a chain and a trace cache."""

    def __init__(self, chain: _Chain, cache: _Cache, max_count: int) -> None:
        self.chain = chain
        self.cache = cache
        self.max_count = max_count

    def block_id(self, block: BlockId | None) -> int:
        """Resolve an optional block id to a height; ``None`` means latest."""
        if block is None or block is RequestBlockTag.LATEST:
            return self.chain.best_number
        if block is RequestBlockTag.EARLIEST:
            return 0
        if block is RequestBlockTag.PENDING:
            raise TraceError("'pending' is not supported")
        return block

    def filter(self, request: FilterRequest) -> list[BlockTrace]:
        """Return the traces matching ``request``."""
        from_block = self.block_id(request.from_block)
        to_block = self.block_id(request.to_block)

        count = self.max_count if request.count is None else request.count
        if count > self.max_count:
            raise TraceError(
                f"count ({count}) can't be greater than maximum ({self.max_count})"
            )

        block_hashes = [
            self._hash_at(height)
            for height in range(from_block, to_block + 1)
            if height != 0  # no traces for the genesis block
        ]

        batch_id = self.cache.start_batch(list(block_hashes))
        try:
            return self.fetch_traces(request, block_hashes, count)
        finally:
            self.cache.stop_batch(batch_id)

    def _hash_at(self, height: int) -> bytes:
        try:
            block_hash = self.chain.block_hash(height)
        except Exception as exc:
            raise TraceError(
                f"Error when fetching block {height} header : {exc!r}"
            ) from exc
        if block_hash is None:
            raise TraceError(f"Block with height {height} don't exist")
        return block_hash

    def fetch_traces(
        self,
        request: FilterRequest,
        block_hashes: Sequence[bytes],
        count: int,
    ) -> list[BlockTrace]:
        """Collect matching traces over the blocks, honouring ``after`` and ``count``."""
        from_addresses = request.from_address or []
        to_addresses = request.to_address or []

        traces_amount = -(request.after or 0)
        traces: list[BlockTrace] = []

        for block_hash in block_hashes:
            try:
                block_traces = self.cache.get_traces(block_hash)
            except Exception as exc:
                raise TraceError(f"Failed to replay block. Error : {exc}") from exc

            selected = [
                trace
                for trace in block_traces
                if matches_addresses(trace, from_addresses, to_addresses)
            ]

            # Nothing is kept while still before "after".
            traces_amount += len(selected)
            if traces_amount <= 0:
                continue
            if traces_amount < len(selected):
                selected = selected[len(selected) - traces_amount:]
            traces.extend(selected)

            if traces_amount >= count:
                if request.count is None:
                    raise TraceError(
                        f"the amount of traces goes over the maximum ({self.max_count}), "
                        "please use 'after' and 'count' in your request"
                    )
                return traces[:count]

        return traces