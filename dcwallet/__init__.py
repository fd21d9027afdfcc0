"""Status codes, MySQL queries, run locks, notification delivery and Ethereum/EOS RPC clients for a wallet service."""

__version__ = "0.1.0"