"""Decoding of contract event logs.

``decode`` is total: a log that does not match the requested event, or that
is malformed in any way, yields ``None``. Receipts routinely carry logs from
other contracts and other events, so a miss is ordinary control flow.
"""
import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address
from hexbytes import HexBytes
from web3 import Web3
from web3._utils.events import get_event_data
from web3.exceptions import Web3Exception

from guess_game.abi import event_topic


logger = logging.getLogger(__name__)

# get_event_data reads these keys unconditionally
_LOG_KEYS = ("logIndex", "transactionIndex", "transactionHash", "blockHash", "blockNumber")


@dataclasses.dataclass(frozen=True)
class DecodedEvent:
    name: str
    args: Dict[str, Any]
    address: str
    tx_hash: Optional[str]
    block_number: Optional[int]
    log_index: Optional[int]


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value), 0)
    except ValueError:
        return None


def _as_hex(value: Any) -> Optional[str]:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def _normalize_log(raw_log: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of a log with hex strings turned into bytes and the address checksummed."""
    out = dict(raw_log)
    out["address"] = to_checksum_address(raw_log["address"])
    out["topics"] = [HexBytes(t) for t in raw_log.get("topics") or []]
    out["data"] = HexBytes(raw_log.get("data") or b"")
    for key in _LOG_KEYS:
        out.setdefault(key, None)
    return out


class EventDecoder:
    def __init__(self, contract_address: Optional[str] = None, w3: Optional[Web3] = None):
        self.contract_address = contract_address.lower() if contract_address else None
        self.codec = (w3 or Web3()).codec

    def decode(self, raw_log: Any, event: Mapping[str, Any]) -> Optional[DecodedEvent]:
        if not isinstance(raw_log, Mapping):
            return None
        if self.contract_address and str(raw_log.get("address") or "").lower() != self.contract_address:
            return None
        try:
            log = _normalize_log(raw_log)
        except (KeyError, TypeError, ValueError):
            return None

        topics = log["topics"]
        if not topics or topics[0] != event_topic(event):
            return None
        if any(len(t) != 32 for t in topics):
            return None

        try:
            data = get_event_data(self.codec, event, log)
        except (Web3Exception, DecodingError, KeyError, TypeError, ValueError):
            logger.debug("Malformed %s log skipped", event["name"])
            return None

        return DecodedEvent(
            name=event["name"],
            args=dict(data["args"]),
            address=log["address"],
            tx_hash=_as_hex(log["transactionHash"]),
            block_number=_as_int(log["blockNumber"]),
            log_index=_as_int(log["logIndex"]),
        )

    def find_all(self, logs: Iterable[Any], event: Mapping[str, Any], **match: Any) -> List[DecodedEvent]:
        """Decode every log matching ``event`` whose args equal ``match``."""
        found = []
        for raw in logs or []:
            decoded = self.decode(raw, event)
            if decoded is None:
                continue
            if all(decoded.args.get(k) == v for k, v in match.items()):
                found.append(decoded)
        return found

    def find_first(self, logs: Iterable[Any], event: Mapping[str, Any], **match: Any) -> Optional[DecodedEvent]:
        found = self.find_all(logs, event, **match)
        return found[0] if found else None
