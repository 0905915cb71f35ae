import logging
from typing import Any, List, Mapping, Optional

from eth_abi import encode
from eth_account import Account
from eth_utils import encode_hex, to_checksum_address

from guess_game.abi import GAME_ABI, GUESS_MADE, GUESS_RESOLVED, event_topic
from guess_game.config import GameConfig
from guess_game.errors import PreconditionViolation, RejectedByContract
from guess_game.events import DecodedEvent, EventDecoder
from guess_game.models import GuessRequest, PlayerStats, ResolutionEvent
from guess_game.rpc import ChainClient, receipt_field


logger = logging.getLogger(__name__)


class ContractGateway:
    """Typed access to the prediction game contract.

    Reads are contract calls through web3; writes are signed locally with the
    configured account and broadcast as raw transactions. Inputs are passed
    through as-is: the contract is the authority on which assets it supports.
    """

    def __init__(self, client: ChainClient, contract_address: str, chain_id: int,
                 private_key: Optional[str] = None, account=None):
        self.client = client
        self.address = to_checksum_address(contract_address)
        self.chain_id = chain_id
        self.account = account or (Account.from_key(private_key) if private_key else None)
        self.contract = client.contract(self.address, GAME_ABI)
        self.decoder = EventDecoder(self.address, w3=client.w3)

    @classmethod
    def from_config(cls, config: GameConfig) -> "ContractGateway":
        client = ChainClient(config.network.rpc_url, timeout=config.rpc_timeout)
        return cls(client, config.contract_address, config.network.chain_id, private_key=config.private_key)

    @property
    def player(self) -> Optional[str]:
        return self.account.address if self.account else None

    def _read(self, name: str, *args: Any) -> Any:
        with self.client.translate(name):
            return getattr(self.contract.functions, name)(*args).call()

    # reads

    def owner(self) -> str:
        return to_checksum_address(self._read("owner"))

    def total_fee(self) -> int:
        return self._read("TOTAL_FEE")

    def prize_pool(self) -> int:
        return self._read("getPrizePool")

    def supported_cryptos(self) -> List[str]:
        return list(self._read("getSupportedCryptos"))

    def player_stats(self, player: str) -> PlayerStats:
        return PlayerStats.from_tuple(self._read("getPlayerStats", to_checksum_address(player)))

    def cooldown_remaining(self, player: str) -> int:
        return self._read("getCooldownRemaining", to_checksum_address(player))

    def pending_guess(self, request_id: int) -> GuessRequest:
        return GuessRequest.from_tuple(request_id, self._read("getPendingGuess", request_id))

    def connected_chain_id(self) -> int:
        return self.client.chain_id()

    def block_number(self) -> int:
        return self.client.block_number()

    # writes

    def submit_guess(self, crypto: str, scaled_price: int, fee: int, test: bool = False) -> str:
        name = "testGuess" if test else "guess"
        logger.info("Submitting %s(%s, %d) with fee %d", name, crypto, scaled_price, fee)
        return self._transact(getattr(self.contract.functions, name)(crypto, scaled_price), value=fee)

    def fund_pool(self, amount: int) -> str:
        logger.info("Funding prize pool with %d wei", amount)
        return self._transact(self.contract.functions.fundPool(), value=amount)

    def _transact(self, fn, value: int = 0) -> str:
        if self.account is None:
            raise PreconditionViolation("no_account", "No account connected")
        return self.client.transact(self.account, fn, value, self.chain_id)

    # receipts and events

    def get_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        return self.client.get_receipt(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: float = 180.0, interval: float = 1.0) -> Mapping[str, Any]:
        """Blocking receipt wait for one-shot callers (CLI, pool funding)."""
        receipt = self.client.wait_for_receipt(tx_hash, timeout=timeout, interval=interval)
        if receipt_field(receipt, "status", 1) == 0:
            raise RejectedByContract(tx_hash=tx_hash)
        return receipt

    def guess_made(self, receipt: Mapping[str, Any]) -> Optional[DecodedEvent]:
        return self.decoder.find_first(receipt.get("logs") or [], GUESS_MADE)

    def resolution_events(self, request_id: int, from_block: int) -> List[ResolutionEvent]:
        topics = [encode_hex(event_topic(GUESS_RESOLVED)), encode_hex(encode(["uint256"], [request_id]))]
        logs = self.client.get_logs(self.address, topics, from_block)
        decoded = self.decoder.find_all(logs, GUESS_RESOLVED, requestId=request_id)
        return [ResolutionEvent.from_event(e) for e in decoded]
