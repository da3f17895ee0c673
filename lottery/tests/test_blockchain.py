import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lottery.errors import InsufficientFunds
from lottery.services.blockchain import (
    ContractRandomnessSource,
    Erc20TokenLedger,
    load_artifact_abi,
)

POOL = "0x" + "a" * 40


def _make_web3(receipt_status: int = 1) -> mock.MagicMock:
    web3 = mock.MagicMock()
    web3.eth.account.from_key.return_value = mock.MagicMock(address=POOL)
    web3.eth.chain_id = 97
    web3.eth.gas_price = 10
    web3.eth.get_transaction_count.return_value = 3
    tx_hash = mock.MagicMock()
    tx_hash.hex.return_value = "0xabc"
    web3.eth.send_raw_transaction.return_value = tx_hash
    web3.eth.wait_for_transaction_receipt.return_value = {"status": receipt_status}
    return web3


class Erc20TokenLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.web3 = _make_web3()
        self.contract = mock.MagicMock()
        self.contract.functions.balanceOf.return_value.call.return_value = 10
        self.contract.functions.allowance.return_value.call.return_value = 10
        self.contract.functions.transferFrom.return_value.estimate_gas.return_value = 100000
        self.contract.functions.transferFrom.return_value.build_transaction.return_value = {}
        self.contract.functions.transfer.return_value.estimate_gas.return_value = 100000
        self.contract.functions.transfer.return_value.build_transaction.return_value = {}
        self.ledger = Erc20TokenLedger(self.web3, self.contract, "0x" + "1" * 64, token_id="CAKE")

    def test_pool_account_is_holder(self) -> None:
        self.assertEqual(self.ledger.holder, POOL)
        self.assertEqual(self.ledger.balance_of("bob"), 10)

    def test_transfer_from_checks_allowance_then_sends(self) -> None:
        self.contract.functions.allowance.return_value.call.return_value = 5
        with self.assertRaises(InsufficientFunds) as ctx:
            self.ledger.transfer_from("bob", POOL, 6)
        self.assertEqual(ctx.exception.reason, "Insufficient allowance")
        self.web3.eth.send_raw_transaction.assert_not_called()

        self.contract.functions.allowance.return_value.call.return_value = 10
        self.ledger.transfer_from("bob", POOL, 6)

        self.contract.functions.transferFrom.assert_called_with("bob", POOL, 6)
        build = self.contract.functions.transferFrom.return_value.build_transaction
        tx_params = build.call_args[0][0]
        self.assertEqual(tx_params["nonce"], 3)
        self.assertEqual(tx_params["gas"], 120000)
        self.assertEqual(tx_params["gasPrice"], 10)
        self.assertEqual(tx_params["from"], POOL)
        self.web3.eth.send_raw_transaction.assert_called_once()

    def test_transfer_needs_pool_balance(self) -> None:
        with self.assertRaises(InsufficientFunds):
            self.ledger.transfer("bob", 11)
        self.ledger.transfer("bob", 10)
        self.contract.functions.transfer.assert_called_with("bob", 10)

    def test_reverted_transaction_raises(self) -> None:
        ledger = Erc20TokenLedger(_make_web3(receipt_status=0), self.contract, "0x" + "1" * 64, "CAKE")
        with self.assertRaises(RuntimeError):
            ledger.transfer("bob", 1)


class ContractRandomnessSourceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.web3 = _make_web3()
        self.contract = mock.MagicMock()
        self.contract.address = "0x" + "b" * 40
        self.contract.functions.getRandomNumber.return_value.estimate_gas.return_value = 50000
        self.contract.functions.getRandomNumber.return_value.build_transaction.return_value = {}
        self.source = ContractRandomnessSource(self.web3, self.contract, "0x" + "1" * 64)

    def test_request_and_read(self) -> None:
        self.assertEqual(self.source.source_id, "0x" + "b" * 40)
        self.source.request_random_number(4)
        self.contract.functions.getRandomNumber.assert_called_with(4)

        self.contract.functions.viewLatestLotteryId.return_value.call.return_value = 0
        self.assertIsNone(self.source.latest_fulfilled_round_id())
        self.contract.functions.viewLatestLotteryId.return_value.call.return_value = 4
        self.contract.functions.viewRandomResult.return_value.call.return_value = 1888888
        self.assertEqual(self.source.latest_fulfilled_round_id(), 4)
        self.assertEqual(self.source.latest_random_number(), 1888888)


class ArtifactTests(unittest.TestCase):
    def test_loads_abi_from_artifact(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "Token.json"
            path.write_text(json.dumps({"abi": [{"name": "transfer"}]}), encoding="utf-8")
            self.assertEqual(load_artifact_abi(str(path)), [{"name": "transfer"}])

            path.write_text(json.dumps({"bytecode": "0x"}), encoding="utf-8")
            with self.assertRaises(ValueError):
                load_artifact_abi(str(path))

        with self.assertRaises(FileNotFoundError):
            load_artifact_abi("/nonexistent/Token.json")


if __name__ == "__main__":
    unittest.main()
