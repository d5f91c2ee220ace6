"""HTTP API for the ChatChain sync engine."""
