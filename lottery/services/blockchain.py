from __future__ import annotations

import json
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..errors import InsufficientFunds

if TYPE_CHECKING:  # pragma: no cover
    from web3 import Web3
    from web3.contract import Contract


def load_artifact_abi(path: str):
    artifact_path = Path(path)
    if not artifact_path.exists():
        raise FileNotFoundError(f"Contract artifact not found: {artifact_path}")
    with artifact_path.open("r", encoding="utf-8") as fh:
        artifact = json.load(fh)
    abi = artifact.get("abi")
    if not isinstance(abi, list):
        raise ValueError(f"ABI not found in artifact: {path}")
    return abi


def connect(rpc_url: str) -> "Web3":
    from web3 import Web3
    from web3.middleware import ExtraDataToPOAMiddleware

    web3 = Web3(Web3.HTTPProvider(rpc_url))
    if not web3.is_connected():
        raise ConnectionError(f"Cannot connect to RPC endpoint: {rpc_url}")

    # Inject PoA middleware to support networks such as Hardhat or BSC.
    web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return web3


def contract_at(web3: "Web3", address: str, abi_path: str) -> "Contract":
    from web3 import Web3

    return web3.eth.contract(address=Web3.to_checksum_address(address), abi=load_artifact_abi(abi_path))


class ContractClient:
    """Signs and sends transactions from the lottery's own account."""

    def __init__(self, web3: "Web3", contract: "Contract", signer_key: str) -> None:
        self._web3 = web3
        self._contract = contract
        self._account = web3.eth.account.from_key(signer_key)

    @property
    def address(self) -> str:
        return self._contract.address

    @property
    def account_address(self) -> str:
        return self._account.address

    @property
    def chain_id(self) -> Optional[int]:
        try:
            return int(self._web3.eth.chain_id)
        except Exception:  # pragma: no cover - provider without chain id
            return None

    def _send_transaction(self, fn, tx_params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        tx_params = dict(tx_params or {})
        tx_params.setdefault("from", self._account.address)

        try:
            gas_estimate = fn.estimate_gas(tx_params)
        except Exception:  # pragma: no cover - rely on conservative gas limit if estimation fails
            gas_estimate = 350000

        gas_limit = max(int(math.ceil(gas_estimate * 1.2)), 100000)
        nonce = self._web3.eth.get_transaction_count(self._account.address)

        tx = fn.build_transaction(
            {
                **tx_params,
                "nonce": nonce,
                "gas": gas_limit,
                "gasPrice": self._web3.eth.gas_price,
            }
        )

        chain_id = self.chain_id
        if chain_id is not None:
            tx["chainId"] = chain_id

        signed = self._account.sign_transaction(tx)
        tx_hash = self._web3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self._web3.eth.wait_for_transaction_receipt(tx_hash, timeout=180, poll_latency=2)
        if receipt["status"] != 1:
            raise RuntimeError(f"Transaction reverted: {tx_hash.hex()}")

        return {"tx_hash": tx_hash.hex(), "receipt": receipt}


class Erc20TokenLedger(ContractClient):
    """Payment token backed by an ERC-20 contract; the signer is the pool account."""

    def __init__(self, web3: "Web3", contract: "Contract", signer_key: str, token_id: str) -> None:
        super().__init__(web3, contract, signer_key)
        self.token_id = token_id

    @property
    def holder(self) -> str:
        return self.account_address

    def balance_of(self, identity: str) -> int:
        return int(self._contract.functions.balanceOf(identity).call())

    def transfer(self, recipient: str, amount: int) -> None:
        if self.balance_of(self.holder) < amount:
            raise InsufficientFunds("Insufficient balance")
        self._send_transaction(self._contract.functions.transfer(recipient, int(amount)))

    def transfer_from(self, sender: str, recipient: str, amount: int) -> None:
        allowance = int(self._contract.functions.allowance(sender, self.holder).call())
        if allowance < amount:
            raise InsufficientFunds("Insufficient allowance")
        if self.balance_of(sender) < amount:
            raise InsufficientFunds("Insufficient balance")
        self._send_transaction(self._contract.functions.transferFrom(sender, recipient, int(amount)))


class ContractRandomnessSource(ContractClient):
    """Randomness generator contract (VRF-style request / fulfil)."""

    @property
    def source_id(self) -> str:
        return self.address

    def request_random_number(self, round_id: int) -> None:
        self._send_transaction(self._contract.functions.getRandomNumber(int(round_id)))

    def latest_fulfilled_round_id(self) -> Optional[int]:
        value = int(self._contract.functions.viewLatestLotteryId().call())
        return value or None

    def latest_random_number(self) -> int:
        return int(self._contract.functions.viewRandomResult().call())
