"""ABI surface of the price prediction game contract.

The contract itself is a black box; web3 builds the call data and unpacks the
results from this description.
"""
from typing import Any, Dict, List

from eth_utils import event_abi_to_log_topic


GAME_ABI: List[Dict[str, Any]] = [
    {"type": "function", "name": "owner", "inputs": [], "outputs": [{"name": "", "type": "address"}],
     "stateMutability": "view"},
    {"type": "function", "name": "TOTAL_FEE", "inputs": [], "outputs": [{"name": "", "type": "uint256"}],
     "stateMutability": "view"},
    {"type": "function", "name": "getPrizePool", "inputs": [], "outputs": [{"name": "", "type": "uint256"}],
     "stateMutability": "view"},
    {"type": "function", "name": "getSupportedCryptos", "inputs": [],
     "outputs": [{"name": "", "type": "string[]"}], "stateMutability": "view"},
    {
        "type": "function",
        "name": "getPlayerStats",
        "inputs": [{"name": "player", "type": "address"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "totalGuesses", "type": "uint256"},
                    {"name": "wins", "type": "uint256"},
                    {"name": "totalWinnings", "type": "uint256"},
                    {"name": "bestAccuracyBps", "type": "uint256"},
                ],
            }
        ],
        "stateMutability": "view",
    },
    {"type": "function", "name": "getCooldownRemaining", "inputs": [{"name": "player", "type": "address"}],
     "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view"},
    {
        "type": "function",
        "name": "getPendingGuess",
        "inputs": [{"name": "requestId", "type": "uint256"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "player", "type": "address"},
                    {"name": "crypto", "type": "string"},
                    {"name": "guessedPrice", "type": "uint256"},
                    {"name": "timestamp", "type": "uint256"},
                    {"name": "resolved", "type": "bool"},
                ],
            }
        ],
        "stateMutability": "view",
    },
    {"type": "function", "name": "fundPool", "inputs": [], "outputs": [], "stateMutability": "payable"},
    {
        "type": "function",
        "name": "guess",
        "inputs": [{"name": "crypto", "type": "string"}, {"name": "predictedPrice", "type": "uint256"}],
        "outputs": [{"name": "requestId", "type": "uint256"}],
        "stateMutability": "payable",
    },
    {
        "type": "function",
        "name": "testGuess",
        "inputs": [{"name": "crypto", "type": "string"}, {"name": "predictedPrice", "type": "uint256"}],
        "outputs": [{"name": "requestId", "type": "uint256"}],
        "stateMutability": "payable",
    },
    {
        "type": "event",
        "name": "GuessMade",
        "anonymous": False,
        "inputs": [
            {"name": "requestId", "type": "uint256", "indexed": True},
            {"name": "player", "type": "address", "indexed": True},
            {"name": "crypto", "type": "string", "indexed": False},
            {"name": "guessedPrice", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "GuessResolved",
        "anonymous": False,
        "inputs": [
            {"name": "requestId", "type": "uint256", "indexed": True},
            {"name": "player", "type": "address", "indexed": True},
            {"name": "crypto", "type": "string", "indexed": False},
            {"name": "guessedPrice", "type": "uint256", "indexed": False},
            {"name": "actualPrice", "type": "uint256", "indexed": False},
            {"name": "accuracyBps", "type": "uint256", "indexed": False},
            {"name": "reward", "type": "uint256", "indexed": False},
            {"name": "won", "type": "bool", "indexed": False},
        ],
    },
]


def find_entry(name: str, kind: str = "function") -> Dict[str, Any]:
    for entry in GAME_ABI:
        if entry["type"] == kind and entry["name"] == name:
            return entry
    raise KeyError(f"No {kind} named {name} in game ABI")


def event_topic(entry: Dict[str, Any]) -> bytes:
    return bytes(event_abi_to_log_topic(entry))


GUESS_MADE = find_entry("GuessMade", "event")
GUESS_RESOLVED = find_entry("GuessResolved", "event")
