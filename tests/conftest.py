import os
import sys
import time

import pytest
from eth_abi import decode, encode
from eth_account import Account
from eth_utils import decode_hex, encode_hex, keccak
from eth_utils.abi import collapse_if_tuple, function_abi_to_4byte_selector
from web3 import Web3
from web3.providers import BaseProvider

# Ensure project root is on sys.path so tests can import local package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from guess_game.abi import GAME_ABI, GUESS_MADE, GUESS_RESOLVED, event_topic, find_entry
from guess_game.config import PollingPolicy
from guess_game.coordinator import GuessCoordinator
from guess_game.gateway import ContractGateway
from guess_game.rpc import ChainClient


CONTRACT = "0x5E779AC2c0E1Fd2D686fc7b8cdb2fc4D86239978"
OTHER_CONTRACT = "0x000000000000000000000000000000000000dEaD"
PRIVATE_KEY = "0x" + "11" * 32
PLAYER = Account.from_key(PRIVATE_KEY).address
CHAIN_ID = 50312
FEE = 110_000_000_000_000_000  # 0.11 STT
TX_HASH = "0x" + "cd" * 32
RESOLVE_TX = "0x" + "ef" * 32
BLOCK_HASH = "0x" + "ab" * 32


def topic_uint(value):
    return encode_hex(encode(["uint256"], [value]))


def topic_address(address):
    return encode_hex(encode(["address"], [address]))


def calldata(name, *args):
    entry = find_entry(name)
    types = [collapse_if_tuple(p) for p in entry["inputs"]]
    return encode_hex(function_abi_to_4byte_selector(entry) + encode(types, list(args)))


def revert(reason):
    data = "0x08c379a0" + encode(["string"], [reason]).hex()
    return {"code": 3, "message": "execution reverted", "data": data}


def _log(address, topics, data, block, tx_hash, index):
    return {
        "address": address,
        "topics": topics,
        "data": data,
        "blockNumber": hex(block),
        "blockHash": BLOCK_HASH,
        "transactionHash": tx_hash,
        "transactionIndex": "0x0",
        "logIndex": hex(index),
        "removed": False,
    }


def guess_made_log(request_id, player=PLAYER, crypto="bitcoin", price=6_500_000_000_000,
                   address=CONTRACT, block=100):
    topics = [encode_hex(event_topic(GUESS_MADE)), topic_uint(request_id), topic_address(player)]
    data = encode_hex(encode(["string", "uint256"], [crypto, price]))
    return _log(address.lower(), topics, data, block, TX_HASH, 1)


def guess_resolved_log(request_id, actual_price, accuracy_bps, reward, won, player=PLAYER,
                       crypto="bitcoin", guessed_price=6_500_000_000_000, block=103, tx_hash=RESOLVE_TX):
    data = encode(
        ["string", "uint256", "uint256", "uint256", "uint256", "bool"],
        [crypto, guessed_price, actual_price, accuracy_bps, reward, won],
    )
    topics = [encode_hex(event_topic(GUESS_RESOLVED)), topic_uint(request_id), topic_address(player)]
    return _log(CONTRACT.lower(), topics, encode_hex(data), block, tx_hash, 0)


def transfer_log():
    topics = [
        encode_hex(keccak(text="Transfer(address,address,uint256)")),
        topic_address(PLAYER),
        topic_address(CONTRACT.lower()),
    ]
    return _log(OTHER_CONTRACT.lower(), topics, encode_hex(encode(["uint256"], [5])), 100, TX_HASH, 0)


def _int(value):
    return value if isinstance(value, int) else int(value, 16)


class RpcFailure(Exception):
    def __init__(self, error):
        super().__init__(error.get("message"))
        self.error = error


class FakeChain(BaseProvider):
    """In-memory node answering the JSON-RPC calls web3 makes against the game contract.

    A view set to an exception is raised from the transport; ``submit_error``
    may be a JSON-RPC error object (returned to web3) or an exception.
    """

    def __init__(self):
        super().__init__()
        self.chain = CHAIN_ID
        self.head = 110
        self.views = {
            "owner": PLAYER,
            "TOTAL_FEE": FEE,
            "getPrizePool": 50 * 10 ** 18,
            "getSupportedCryptos": ["bitcoin", "ethereum"],
            "getPlayerStats": (3, 1, FEE * 10, 2),
            "getCooldownRemaining": 0,
        }
        self.raw_results = {}
        self.resolved_flags = [False]
        self.pending_reads = 0
        self.mined = True
        self.receipts = []
        self.logs = []
        self.estimates = []
        self.sent = []
        self.log_filters = []
        self.submit_error = None
        self.send_error = None
        self.delays = {}
        self._functions = {
            function_abi_to_4byte_selector(e): e for e in GAME_ABI if e["type"] == "function"
        }
        self.receipt_logs = [transfer_log(), guess_made_log(42)]

    def is_connected(self, show_traceback=False):
        return True

    def make_request(self, method, params):
        if self.delays.get(method):
            time.sleep(self.delays[method])
        try:
            result = getattr(self, method)(*params)
        except RpcFailure as e:
            return {"jsonrpc": "2.0", "id": 1, "error": e.error}
        return {"jsonrpc": "2.0", "id": 1, "result": result}

    def _fail_with(self, error):
        if isinstance(error, Exception):
            raise error
        raise RpcFailure(error)

    def _pending(self, request_id):
        flags = self.resolved_flags
        resolved = flags[min(self.pending_reads, len(flags) - 1)]
        self.pending_reads += 1
        return (PLAYER, "bitcoin", 6_500_000_000_000, 1_700_000_000, resolved)

    # JSON-RPC methods

    def eth_chainId(self):
        return hex(self.chain)

    def eth_blockNumber(self):
        return hex(self.head)

    def eth_gasPrice(self):
        return hex(10 ** 9)

    def eth_getTransactionCount(self, address, block="latest"):
        return hex(len(self.sent))

    def eth_getCode(self, address, block="latest"):
        return "0x6080"

    def eth_call(self, tx, block="latest"):
        data = decode_hex(tx.get("data") or tx.get("input"))
        entry = self._functions[data[:4]]
        name = entry["name"]
        if name in self.raw_results:
            return self.raw_results[name]
        args = decode([collapse_if_tuple(p) for p in entry["inputs"]], data[4:])
        value = self._pending(*args) if name == "getPendingGuess" else self.views[name]
        if isinstance(value, Exception):
            raise value
        return encode_hex(encode([collapse_if_tuple(p) for p in entry["outputs"]], [value]))

    def eth_estimateGas(self, tx, *block):
        self.estimates.append({
            "from": tx.get("from"),
            "to": tx.get("to"),
            "value": _int(tx.get("value", 0)),
            "data": tx.get("data") or tx.get("input"),
        })
        if self.submit_error is not None:
            self._fail_with(self.submit_error)
        return hex(100_000)

    def eth_sendRawTransaction(self, raw):
        if self.send_error is not None:
            self._fail_with(self.send_error)
        self.sent.append(raw)
        return TX_HASH

    def eth_getTransactionReceipt(self, tx_hash):
        if self.receipts:
            return self.receipts.pop(0)
        if not self.mined:
            return None
        return {"status": "0x1", "blockNumber": hex(100), "transactionHash": tx_hash, "logs": self.receipt_logs}

    def eth_getLogs(self, flt):
        address = flt["address"].lower()
        topics = [t.lower() if isinstance(t, str) else t for t in flt.get("topics") or []]
        self.log_filters.append({"address": flt["address"], "topics": topics, "fromBlock": _int(flt["fromBlock"])})
        out = []
        for log in self.logs:
            if log["address"].lower() != address:
                continue
            if all(t is None or t == lt.lower() for t, lt in zip(topics, log["topics"])):
                out.append(log)
        return out


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def client(chain):
    return ChainClient(w3=Web3(chain))


@pytest.fixture
def gateway(client):
    return ContractGateway(client, CONTRACT, CHAIN_ID, private_key=PRIVATE_KEY)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def coordinator(gateway, clock):
    return GuessCoordinator(gateway, PollingPolicy(), clock=clock, sleep=clock.sleep)
