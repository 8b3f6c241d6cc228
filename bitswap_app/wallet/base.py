"""Abstract signing wallet the swap core talks to."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..contract.program import ContractProgram


class ExecutionStatus(str, Enum):
    """Outcome of submitting a program."""
    CONFIRMED = "confirmed"
    REJECTED = "rejected"     # Nothing happened
    UNKNOWN = "unknown"       # Submission outcome could not be determined


@dataclass(frozen=True)
class ExecutionResult:
    """Result of executing a contract program."""
    status: ExecutionStatus
    txid: Optional[str] = None
    message: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.status == ExecutionStatus.CONFIRMED


class SigningWallet(ABC):
    """
    Wallet capability: keys, signatures and program execution.

    The core never sees private key material; it asks the wallet to sign
    and to execute programs on its behalf.
    """

    @abstractmethod
    def get_public_key(self) -> str:
        """Hex public key identifying this party."""
        pass

    @abstractmethod
    def sign(self, message: bytes) -> str:
        """Hex signature over message."""
        pass

    @abstractmethod
    def verify(self, pubkey: str, message: bytes, signature: str) -> bool:
        """Check another party's signature. Never raises on bad input."""
        pass

    @abstractmethod
    def execute(self, program: ContractProgram) -> ExecutionResult:
        """Submit a program for execution by the ledger."""
        pass

    @abstractmethod
    def get_balances(self) -> dict[str, Decimal]:
        """Token balances of this party."""
        pass

    @abstractmethod
    def get_network(self) -> str:
        """Name of the network the wallet is connected to."""
        pass

    @abstractmethod
    def get_chain_height(self) -> int:
        """Current chain height."""
        pass
