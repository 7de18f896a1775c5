"""Token balance lookup (LSP7 / ERC20 ``balanceOf``)."""

from __future__ import annotations

from web3 import AsyncWeb3

from lukso_bridge.chain.abi import BALANCE_OF_ABI
from lukso_bridge.chain.rpc import classify_chain_error


async def get_token_balance(w3: AsyncWeb3, contract_address: str, owner: str) -> int:
    """Raw on-chain balance of ``owner`` in the token's smallest unit."""
    contract = w3.eth.contract(
        address=AsyncWeb3.to_checksum_address(contract_address),
        abi=BALANCE_OF_ABI,
    )
    try:
        return await contract.functions.balanceOf(AsyncWeb3.to_checksum_address(owner)).call()
    except Exception as e:
        raise classify_chain_error(e) from e
