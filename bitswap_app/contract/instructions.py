"""
Closed instruction set for HTLC contract programs.

Every instruction is a frozen dataclass tagged with an OpCode. The set is
closed: ``Instruction`` is the union of exactly these variants and
``OPCODE_TYPES`` maps every tag to its variant. Operands are range-checked
by the compiler before an instruction is built, so construction never fails.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Union

from ..errors import MalformedMessageError

Value = Union[bytes, int, str, Decimal]


class OpCode(str, Enum):
    """Instruction tags."""
    PUSH_VALUE = "push_value"
    STORE_KEY_VALUE = "store_key_value"
    HASH = "hash"
    ASSERT_EQUAL = "assert_equal"
    ADJUST_BALANCE = "adjust_balance"
    TRANSFER = "transfer"
    LOCK_FUNDS = "lock_funds"
    RETURN = "return"


def encode_value(value: Value) -> dict[str, Any]:
    """Encode an operand value with an explicit type tag."""
    if isinstance(value, bytes):
        return {"b": value.hex()}
    if isinstance(value, bool):
        raise TypeError("Boolean operands are not supported")
    if isinstance(value, int):
        return {"i": value}
    if isinstance(value, Decimal):
        return {"d": str(value)}
    if isinstance(value, str):
        return {"s": value}
    raise TypeError(f"Unsupported operand type: {type(value).__name__}")


def decode_amount(raw: Any) -> Decimal:
    """Decode a finite decimal amount."""
    try:
        amount = Decimal(raw)
    except (ValueError, TypeError, ArithmeticError) as e:
        raise MalformedMessageError(f"Undecodable amount: {raw!r}", reason="bad_operand") from e
    if not amount.is_finite():
        raise MalformedMessageError(f"Amount must be finite, got: {raw!r}", reason="bad_operand")
    return amount


def decode_value(encoded: Any) -> Value:
    """Decode a type-tagged operand value."""
    if not isinstance(encoded, dict) or len(encoded) != 1:
        raise MalformedMessageError("Operand must be a single-key tagged object",
                                    reason="bad_operand")

    (tag, raw), = encoded.items()
    try:
        if tag == "b":
            return bytes.fromhex(raw)
        if tag == "i" and isinstance(raw, int) and not isinstance(raw, bool):
            return raw
        if tag == "d":
            return decode_amount(raw)
        if tag == "s" and isinstance(raw, str):
            return raw
    except (ValueError, TypeError, ArithmeticError) as e:
        raise MalformedMessageError(f"Undecodable operand: {e}", reason="bad_operand") from e

    raise MalformedMessageError(f"Unknown operand tag: {tag}", reason="bad_operand")


@dataclass(frozen=True)
class PushValue:
    """Push a constant onto the stack."""
    op: ClassVar[OpCode] = OpCode.PUSH_VALUE
    value: Value

    def operands(self) -> dict[str, Any]:
        return {"value": encode_value(self.value)}


@dataclass(frozen=True)
class StoreKeyValue:
    """Durably record a value under a namespaced storage key."""
    op: ClassVar[OpCode] = OpCode.STORE_KEY_VALUE
    key: str
    value: Value

    def operands(self) -> dict[str, Any]:
        return {"key": self.key, "value": encode_value(self.value)}


@dataclass(frozen=True)
class Hash:
    """Pop a byte string and push its digest."""
    op: ClassVar[OpCode] = OpCode.HASH
    algorithm: str = "sha256"

    def operands(self) -> dict[str, Any]:
        return {"algorithm": self.algorithm}


@dataclass(frozen=True)
class AssertEqual:
    """Pop two values; abort the whole program if they differ."""
    op: ClassVar[OpCode] = OpCode.ASSERT_EQUAL

    def operands(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class AdjustBalance:
    """Credit (or debit, if negative) a virtual account."""
    op: ClassVar[OpCode] = OpCode.ADJUST_BALANCE
    account: str
    token: str
    delta: Decimal

    def operands(self) -> dict[str, Any]:
        return {"account": self.account, "token": self.token, "delta": str(self.delta)}


@dataclass(frozen=True)
class Transfer:
    """Move an amount of a token between two accounts."""
    op: ClassVar[OpCode] = OpCode.TRANSFER
    sender: str
    recipient: str
    token: str
    amount: Decimal

    def operands(self) -> dict[str, Any]:
        return {
            "sender": self.sender,
            "recipient": self.recipient,
            "token": self.token,
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class LockFunds:
    """Withdraw an amount of a token from the caller into the contract."""
    op: ClassVar[OpCode] = OpCode.LOCK_FUNDS
    token: str
    amount: Decimal

    def operands(self) -> dict[str, Any]:
        return {"token": self.token, "amount": str(self.amount)}


@dataclass(frozen=True)
class Return:
    """Stop execution successfully."""
    op: ClassVar[OpCode] = OpCode.RETURN

    def operands(self) -> dict[str, Any]:
        return {}


Instruction = Union[
    PushValue,
    StoreKeyValue,
    Hash,
    AssertEqual,
    AdjustBalance,
    Transfer,
    LockFunds,
    Return,
]

OPCODE_TYPES: dict[OpCode, type] = {
    OpCode.PUSH_VALUE: PushValue,
    OpCode.STORE_KEY_VALUE: StoreKeyValue,
    OpCode.HASH: Hash,
    OpCode.ASSERT_EQUAL: AssertEqual,
    OpCode.ADJUST_BALANCE: AdjustBalance,
    OpCode.TRANSFER: Transfer,
    OpCode.LOCK_FUNDS: LockFunds,
    OpCode.RETURN: Return,
}

if set(OPCODE_TYPES) != set(OpCode):
    raise RuntimeError("Every OpCode must map to exactly one instruction type")


def instruction_to_dict(instruction: Instruction) -> dict[str, Any]:
    """Serialize one instruction to a plain dict."""
    return {"op": instruction.op.value, **instruction.operands()}


def instruction_from_dict(data: dict[str, Any]) -> Instruction:
    """
    Rebuild an instruction from its serialized form.

    Raises:
        MalformedMessageError: If the opcode is unknown or an operand is missing
    """
    if not isinstance(data, dict):
        raise MalformedMessageError("Instruction must be an object", reason="bad_instruction")

    try:
        op = OpCode(data.get("op"))
    except ValueError as e:
        raise MalformedMessageError(f"Unknown opcode: {data.get('op')}",
                                    reason="unknown_opcode") from e

    try:
        if op == OpCode.PUSH_VALUE:
            return PushValue(decode_value(data["value"]))
        if op == OpCode.STORE_KEY_VALUE:
            return StoreKeyValue(str(data["key"]), decode_value(data["value"]))
        if op == OpCode.HASH:
            return Hash(str(data.get("algorithm", "sha256")))
        if op == OpCode.ASSERT_EQUAL:
            return AssertEqual()
        if op == OpCode.ADJUST_BALANCE:
            return AdjustBalance(str(data["account"]), str(data["token"]),
                                 decode_amount(data["delta"]))
        if op == OpCode.TRANSFER:
            return Transfer(str(data["sender"]), str(data["recipient"]),
                            str(data["token"]), decode_amount(data["amount"]))
        if op == OpCode.LOCK_FUNDS:
            return LockFunds(str(data["token"]), decode_amount(data["amount"]))
        return Return()
    except KeyError as e:
        raise MalformedMessageError(f"Instruction {op.value} missing operand {e}",
                                    reason="missing_operand") from e
    except (ArithmeticError, TypeError) as e:
        raise MalformedMessageError(f"Instruction {op.value} has a bad amount: {e}",
                                    reason="bad_operand") from e
