"""LUKSO JSON-RPC access: LSP8 minting and balance lookups."""
