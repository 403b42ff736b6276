"""Strategy execution engine: sandboxed user strategies trading a token across Solana wallets."""

__version__ = "0.1.0"
