"""In-memory models of a staked price oracle, a parachain ping service and a transaction fee charger."""

__version__ = "0.1.0"

__all__ = [
    "balances",
    "fee_adjustment",
    "fixed",
    "oracle",
    "oracle_model",
    "origin",
    "ping",
    "price_feed",
    "transaction_fee",
    "weights",
]