"""Shared collaborators for the runnable examples."""

from __future__ import annotations


class PaymentGateway:
    """A remote service the examples never want to reach."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint

    def authorise(self, account: str, amount: int) -> bool:
        raise ConnectionError(self.endpoint)

    def capture(self, account: str, amount: int) -> str:
        raise ConnectionError(self.endpoint)

    @staticmethod
    def fee_for(amount: int) -> int:
        return amount // 100


def checkout(gateway: PaymentGateway, account: str, amount: int) -> str | None:
    """Charge *amount* plus the gateway fee when authorised."""
    total = amount + PaymentGateway.fee_for(amount)
    if not gateway.authorise(account, total):
        return None
    return gateway.capture(account, total)
