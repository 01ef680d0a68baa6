"""
Contract instance creation utilities.
"""

import json

from web3 import Web3
from web3.contract import Contract


def load_abi(abi_path: str) -> list:
    """
    Load an ABI from a JSON file. Accepts a Hardhat artifact ({"abi": [...]}) or a bare ABI list.
    """
    with open(abi_path, "r", encoding="utf-8") as file:
        interface = json.load(file)
    if isinstance(interface, dict):
        return interface["abi"]
    return interface


def create_contract_instance(w3: Web3, address: str, abi_path: str) -> Contract:
    """
    Create and return a Web3 contract instance.

    Args:
        w3: The Web3 instance the contract is bound to.
        address: The address of the contract.
        abi_path: Path to the ABI JSON file.

    Returns:
        Web3 contract instance.
    """
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=load_abi(abi_path))
