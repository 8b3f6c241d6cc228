"""
Immutable contract program container and wire codec.

A ContractProgram is a finite straight-line sequence of instructions. Its
canonical wire form is sorted-key JSON, so the digest of a program is stable
across parties and can be used to refer to it in audits and logs.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import orjson

from ..errors import MalformedMessageError
from .instructions import (
    Hash,
    Instruction,
    OpCode,
    PushValue,
    instruction_from_dict,
    instruction_to_dict,
)

PROGRAM_FORMAT_VERSION = 1


@dataclass(frozen=True)
class ContractProgram:
    """Ordered, immutable sequence of instructions."""

    instructions: tuple[Instruction, ...]

    def __post_init__(self) -> None:
        # Accept any iterable but always store a tuple
        if not isinstance(self.instructions, tuple):
            object.__setattr__(self, "instructions", tuple(self.instructions))

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def __len__(self) -> int:
        return len(self.instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self.instructions[index]

    def opcodes(self) -> list[OpCode]:
        """Opcode sequence, useful for quick structural checks."""
        return [instruction.op for instruction in self.instructions]

    def find(self, op: OpCode) -> list[tuple[int, Instruction]]:
        """All (index, instruction) pairs with the given opcode."""
        return [(i, ins) for i, ins in enumerate(self.instructions) if ins.op == op]

    def to_dict(self) -> dict[str, Any]:
        """Plain representation of the program."""
        return {
            "version": PROGRAM_FORMAT_VERSION,
            "instructions": [instruction_to_dict(ins) for ins in self.instructions],
        }

    def to_wire(self) -> bytes:
        """Canonical JSON encoding."""
        return orjson.dumps(self.to_dict(), option=orjson.OPT_SORT_KEYS)

    @classmethod
    def from_wire(cls, wire: bytes) -> "ContractProgram":
        """
        Decode a program from its wire form.

        Raises:
            MalformedMessageError: If the payload is not a valid program
        """
        try:
            data = orjson.loads(wire)
        except orjson.JSONDecodeError as e:
            raise MalformedMessageError(f"Program is not valid JSON: {e}",
                                        reason="invalid_json") from e

        if not isinstance(data, dict) or not isinstance(data.get("instructions"), list):
            raise MalformedMessageError("Program must contain an instruction list",
                                        reason="bad_program")

        if data.get("version") != PROGRAM_FORMAT_VERSION:
            raise MalformedMessageError(f"Unsupported program version: {data.get('version')}",
                                        reason="bad_version")

        return cls(tuple(instruction_from_dict(item) for item in data["instructions"]))

    def digest(self) -> str:
        """SHA-256 hex digest of the wire form."""
        return hashlib.sha256(self.to_wire()).hexdigest()

    def extract_preimage(self) -> Optional[bytes]:
        """
        Return the preimage revealed by a claim program, if any.

        A claim pushes the secret and immediately hashes it, so anyone who
        sees the program can recover the secret and claim the mirrored leg.
        """
        for current, following in zip(self.instructions, self.instructions[1:]):
            if (isinstance(current, PushValue) and isinstance(current.value, bytes)
                    and isinstance(following, Hash)):
                return current.value
        return None
