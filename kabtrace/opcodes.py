"""EVM opcode names, call classification and memory helpers."""

from __future__ import annotations

import enum


class CallType(enum.Enum):
    """Kind of message call that opened a context."""

    CALL = "call"
    CALL_CODE = "callcode"
    DELEGATE_CALL = "delegatecall"
    STATIC_CALL = "staticcall"


class ContextKind(enum.Enum):
    """Whether an opcode opens a call context or a create context."""

    CALL = "call"
    CREATE = "create"


_NAMED = {
    0: "Stop", 1: "Add", 2: "Mul", 3: "Sub", 4: "Div", 5: "SDiv", 6: "Mod",
    7: "SMod", 8: "AddMod", 9: "MulMod", 10: "Exp", 11: "SignExtend",
    16: "Lt", 17: "Gt", 18: "Slt", 19: "Sgt", 20: "Eq", 21: "IsZero",
    22: "And", 23: "Or", 24: "Xor", 25: "Not", 26: "Byte", 27: "Shl",
    28: "Shr", 29: "Sar", 32: "Keccak256",
    48: "Address", 49: "Balance", 50: "Origin", 51: "Caller", 52: "CallValue",
    53: "CallDataLoad", 54: "CallDataSize", 55: "CallDataCopy", 56: "CodeSize",
    57: "CodeCopy", 58: "GasPrice", 59: "ExtCodeSize", 60: "ExtCodeCopy",
    61: "ReturnDataSize", 62: "ReturnDataCopy", 63: "ExtCodeHash",
    64: "BlockHash", 65: "Coinbase", 66: "Timestamp", 67: "Number",
    68: "Difficulty", 69: "GasLimit", 70: "ChainId",
    80: "Pop", 81: "MLoad", 82: "MStore", 83: "MStore8", 84: "SLoad",
    85: "SStore", 86: "Jump", 87: "JumpI", 88: "GetPc", 89: "MSize",
    90: "Gas", 91: "JumpDest",
    176: "JumpTo", 177: "JumpIf", 178: "JumpSub", 180: "JumpSubv",
    181: "BeginSub", 182: "BeginData", 184: "ReturnSub", 185: "PutLocal",
    186: "GetLocal",
    225: "SLoadBytes", 226: "SStoreBytes", 227: "SSize",
    240: "Create", 241: "Call", 242: "CallCode", 243: "Return",
    244: "DelegateCall", 245: "Create2", 250: "StaticCall", 252: "TxExecGas",
    253: "Revert", 254: "Invalid", 255: "SelfDestruct",
}
_NAMED.update({0x60 + n: f"Push{n + 1}" for n in range(32)})
_NAMED.update({0x80 + n: f"Dup{n + 1}" for n in range(16)})
_NAMED.update({0x90 + n: f"Swap{n + 1}" for n in range(16)})
_NAMED.update({0xA0 + n: f"Log{n}" for n in range(5)})

_CALL_TYPES = {
    0xF1: CallType.CALL,
    0xF2: CallType.CALL_CODE,
    0xF4: CallType.DELEGATE_CALL,
    0xFA: CallType.STATIC_CALL,
}
_CREATE_OPCODES = frozenset({0xF0, 0xF5})

WORD_SIZE = 32


def opcode_name(opcode: int) -> str:
    """Return the mnemonic of an opcode; raise ValueError for unknown ones."""
    try:
        return _NAMED[opcode]
    except KeyError:
        raise ValueError(f"unknown opcode {opcode:#x}") from None


def context_kind(opcode: int) -> ContextKind | None:
    """Return the kind of context the opcode opens, or None."""
    if opcode in _CREATE_OPCODES:
        return ContextKind.CREATE
    if opcode in _CALL_TYPES:
        return ContextKind.CALL
    return None


def call_type_for(opcode: int) -> CallType | None:
    """Return the call type of a call opcode, or None for other opcodes."""
    return _CALL_TYPES.get(opcode)


def convert_memory(memory: bytes) -> list[bytes]:
    """Split memory into 32-byte words; a short last chunk is left-padded with zeros."""
    data = bytes(memory)
    return [
        data[start:start + WORD_SIZE].rjust(WORD_SIZE, b"\x00")
        for start in range(0, len(data), WORD_SIZE)
    ]