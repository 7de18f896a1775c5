"""Minimal ABI fragments for the LSP8 / LSP7 calls the bridge makes."""

from __future__ import annotations

# keccak256("LSP4Metadata")
LSP4_METADATA_KEY = "0x9afb95cacc9f95858ec44aa8c3b685511002e30ae54415823f406128b85b238e"

LSP8_ABI = [
    {
        "type": "function",
        "name": "mint",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "tokenId", "type": "bytes32"},
            {"name": "force", "type": "bool"},
            {"name": "data", "type": "bytes"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "setData",
        "stateMutability": "payable",
        "inputs": [
            {"name": "dataKey", "type": "bytes32"},
            {"name": "dataValue", "type": "bytes"},
        ],
        "outputs": [],
    },
]

# LSP7 shares the ERC20 balanceOf signature
BALANCE_OF_ABI = [
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "tokenOwner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]
