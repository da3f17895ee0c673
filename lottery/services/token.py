from __future__ import annotations

from collections import defaultdict
from typing import Dict, Protocol, Tuple

from ..errors import InsufficientFunds, ValidationError


class TokenLedger(Protocol):
    """Fungible token seen from the lottery's own account."""

    token_id: str

    def transfer(self, recipient: str, amount: int) -> None:
        ...

    def transfer_from(self, sender: str, recipient: str, amount: int) -> None:
        ...

    def balance_of(self, identity: str) -> int:
        ...


class InMemoryTokenLedger:
    """ERC-20 style balances and allowances kept in process memory."""

    def __init__(self, token_id: str, holder: str = "lottery") -> None:
        self.token_id = token_id
        self.holder = holder
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str], int] = defaultdict(int)

    def mint(self, identity: str, amount: int) -> None:
        if amount < 0:
            raise ValidationError("Amount must be >= 0")
        self._balances[identity] += amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        self._allowances[(owner, spender)] = amount

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances[(owner, spender)]

    def balance_of(self, identity: str) -> int:
        return self._balances[identity]

    def transfer(self, recipient: str, amount: int) -> None:
        self._move(self.holder, recipient, amount)

    def transfer_from(self, sender: str, recipient: str, amount: int) -> None:
        allowed = self._allowances[(sender, self.holder)]
        if allowed < amount:
            raise InsufficientFunds("Insufficient allowance")
        self._move(sender, recipient, amount)
        self._allowances[(sender, self.holder)] = allowed - amount

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValidationError("Amount must be >= 0")
        if self._balances[sender] < amount:
            raise InsufficientFunds("Insufficient balance")
        self._balances[sender] -= amount
        self._balances[recipient] += amount
