"""Host collaborators: transfer service and logical clock"""
from sealbid.core.ledger.balances import BalanceLedger, TransferService
from sealbid.core.ledger.clock import BlockClock, Clock

__all__ = [
    "BalanceLedger",
    "TransferService",
    "BlockClock",
    "Clock",
]
