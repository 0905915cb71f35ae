"""web3 connection to an EVM-compatible node.

``ChainClient`` owns the ``Web3`` instance and turns the failures web3 and
requests raise into the game's error kinds, so callers above it only ever
see ``RejectedByContract`` or ``TransportError``.
"""
import contextlib
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

import requests
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound, Web3Exception

from guess_game.errors import RejectedByContract, TransportError


logger = logging.getLogger(__name__)

BlockId = Union[int, str]

_REVERTED = "execution reverted"


def revert_reason(err: ContractLogicError) -> Optional[str]:
    """Reason string of a revert, or ``None`` when the node gave none."""
    message = getattr(err, "message", None) or (err.args[0] if err.args else "")
    if not isinstance(message, str):
        return None
    if message.startswith(_REVERTED):
        message = message[len(_REVERTED):].lstrip(": ")
    return message.strip() or None


def receipt_field(receipt: Mapping[str, Any], key: str, default: int) -> int:
    """Integer field of a receipt; absent or null values fall back to ``default``."""
    value = receipt.get(key)
    if value is None:
        return default
    return value if isinstance(value, int) else int(str(value), 0)


class ChainClient:
    def __init__(self, rpc_url: Optional[str] = None, timeout: float = 20.0, w3: Optional[Web3] = None):
        if w3 is None:
            if not rpc_url:
                raise RuntimeError("RPC url not set")
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self.w3 = w3

    @contextlib.contextmanager
    def translate(self, what: str) -> Iterator[None]:
        try:
            yield
        except ContractLogicError as e:
            raise RejectedByContract(revert_reason(e)) from e
        except (Web3Exception, requests.RequestException) as e:
            raise TransportError(f"{what} failed: {e}") from e

    def contract(self, address: str, abi: List[Dict[str, Any]]):
        return self.w3.eth.contract(address=to_checksum_address(address), abi=abi)

    def chain_id(self) -> int:
        with self.translate("eth_chainId"):
            return self.w3.eth.chain_id

    def block_number(self) -> int:
        with self.translate("eth_blockNumber"):
            return self.w3.eth.block_number

    def transact(self, account, fn, value: int, chain_id: int) -> str:
        """Estimate, sign and broadcast a contract function call."""
        sender = account.address
        with self.translate(fn.fn_name):
            gas = fn.estimate_gas({"from": sender, "value": value})
            tx = fn.build_transaction({
                "from": sender,
                "value": value,
                "nonce": self.w3.eth.get_transaction_count(sender),
                "gas": gas * 12 // 10,
                "gasPrice": self.w3.eth.gas_price,
                "chainId": chain_id,
            })
            signed = account.sign_transaction(tx)
            tx_hash = self.w3.to_hex(self.w3.eth.send_raw_transaction(signed.raw_transaction))
        logger.info("Transaction sent: %s", tx_hash)
        return tx_hash

    def get_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        """Receipt of a mined transaction, ``None`` while it is pending."""
        with self.translate("eth_getTransactionReceipt"):
            try:
                return self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

    def wait_for_receipt(self, tx_hash: str, timeout: float, interval: float) -> Mapping[str, Any]:
        with self.translate("eth_getTransactionReceipt"):
            try:
                return self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout, poll_latency=interval)
            except TimeExhausted as e:
                raise TransportError(f"Transaction {tx_hash} not mined within {timeout:.0f}s") from e

    def get_logs(self, address: str, topics: List[Optional[str]], from_block: BlockId,
                 to_block: BlockId = "latest") -> List[Mapping[str, Any]]:
        flt = {"address": to_checksum_address(address), "topics": topics,
               "fromBlock": from_block, "toBlock": to_block}
        with self.translate("eth_getLogs"):
            return list(self.w3.eth.get_logs(flt))
