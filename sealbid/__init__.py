"""
Sealbid

An escrowed ledger auction house:
- Time-boxed auctions on a host logical clock
- Bid escrow with synchronous refunds of displaced leaders
- Exactly one settlement path per auction (finalize or pre-bid cancel)
- SQLite persistence and signed-call authentication
"""

__version__ = "0.1.0"
