"""Views of the transaction pool: ``txpool_content``, ``txpool_inspect``, ``txpool_status``.

Addresses and hashes are ``bytes``; amounts are ``int``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Iterable, Protocol, TypeVar

ADDRESS_SIZE = 20
HASH_SIZE = 32
ZERO_ADDRESS = bytes(ADDRESS_SIZE)
ZERO_HASH = bytes(HASH_SIZE)

T = TypeVar("T")


def _hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def _quantity(value: int) -> str:
    return f"0x{value:x}"


@dataclass(frozen=True)
class PoolTransaction:
    """An Ethereum transaction found in the pool.

    ``sender`` is None when the signer could not be recovered; ``to`` is None
    for a contract creation.
    """

    hash: bytes
    sender: bytes | None
    nonce: int
    gas_price: int
    gas_limit: int
    to: bytes | None
    value: int
    input: bytes = b""


class _FromPool(Protocol):
    @classmethod
    def from_pool(cls, tx_hash: bytes, sender: bytes, txn: PoolTransaction) -> Any: ...


@dataclass(frozen=True)
class Transaction:
    """Full description of a pooled transaction."""

    hash: bytes
    nonce: int
    block_hash: bytes | None
    block_number: int | None
    from_address: bytes
    to: bytes | None
    value: int
    gas_price: int
    gas: int
    input: bytes
    transaction_index: int | None

    @classmethod
    def from_pool(cls, tx_hash: bytes, sender: bytes, txn: PoolTransaction) -> Transaction:
        return cls(
            hash=tx_hash,
            nonce=txn.nonce,
            block_hash=None,
            block_number=None,
            from_address=sender,
            to=txn.to,
            value=txn.value,
            gas_price=txn.gas_price,
            gas=txn.gas_limit,
            input=bytes(txn.input),
            transaction_index=None,
        )

    def to_json(self) -> dict[str, Any]:
        """JSON object with camelCase keys; missing block hash and recipient show as zeros."""
        return {
            "hash": _hex(self.hash),
            "nonce": _quantity(self.nonce),
            "blockHash": _hex(self.block_hash or ZERO_HASH),
            "blockNumber": None if self.block_number is None else _quantity(self.block_number),
            "from": _hex(self.from_address),
            "to": _hex(self.to or ZERO_ADDRESS),
            "value": _quantity(self.value),
            "gasPrice": _quantity(self.gas_price),
            "gas": _quantity(self.gas),
            "input": _hex(self.input),
            "transactionIndex": (
                None if self.transaction_index is None else _quantity(self.transaction_index)
            ),
        }


@dataclass(frozen=True)
class Summary:
    """One-line summary of a pooled transaction."""

    to: bytes | None
    value: int
    gas: int
    gas_price: int

    @classmethod
    def from_pool(cls, tx_hash: bytes, sender: bytes, txn: PoolTransaction) -> Summary:
        return cls(to=txn.to, value=txn.value, gas=txn.gas_limit, gas_price=txn.gas_price)

    def to_json(self) -> str:
        return (
            f"{_hex(self.to or ZERO_ADDRESS)}: {self.value} wei + "
            f"{self.gas} gas x {self.gas_price} wei"
        )


@dataclass(frozen=True)
class TxPoolResult(Generic[T]):
    """Pending (ready) and queued (future) parts of a pool view."""

    pending: T
    queued: T


def build_map(
    entries: Iterable[PoolTransaction], kind: type[_FromPool]
) -> dict[bytes, dict[int, Any]]:
    """Group transactions by sender, then by nonce, described by ``kind``."""
    result: dict[bytes, dict[int, Any]] = {}
    for txn in entries:
        sender = txn.sender if txn.sender is not None else ZERO_ADDRESS
        result.setdefault(sender, {})[txn.nonce] = kind.from_pool(txn.hash, sender, txn)
    return result


def content(
    ready: Iterable[PoolTransaction], future: Iterable[PoolTransaction]
) -> TxPoolResult[dict[bytes, dict[int, Transaction]]]:
    """Full descriptions of the ready and future transactions."""
    return TxPoolResult(pending=build_map(ready, Transaction), queued=build_map(future, Transaction))


def inspect(
    ready: Iterable[PoolTransaction], future: Iterable[PoolTransaction]
) -> TxPoolResult[dict[bytes, dict[int, Summary]]]:
    """Summaries of the ready and future transactions."""
    return TxPoolResult(pending=build_map(ready, Summary), queued=build_map(future, Summary))


def status(ready_count: int, future_count: int) -> TxPoolResult[int]:
    """Number of ready and future transactions."""
    if ready_count < 0 or future_count < 0:
        raise ValueError("transaction counts cannot be negative")
    return TxPoolResult(pending=ready_count, queued=future_count)