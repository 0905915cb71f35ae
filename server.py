from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from flask_cors import CORS
from dotenv import load_dotenv
import asyncio
import logging
import os
from typing import Optional

from guess_game.config import GameConfig, configure_logging
from guess_game.coordinator import GuessCoordinator
from guess_game.dashboard import load_overview
from guess_game.errors import GuessGameError, PreconditionViolation, RejectedByContract, TransportError
from guess_game.gateway import ContractGateway
from guess_game.units import parse_ether

load_dotenv()
logger = logging.getLogger(__name__)

app = Flask(__name__)
# Allow browser calls from the game front end.
CORS(app, resources={r"/*": {"origins": os.getenv("CORS_ORIGINS", "*")}})

config = GameConfig.from_env()
gateway: Optional[ContractGateway] = None
coordinator: Optional[GuessCoordinator] = None


def configure(gw: ContractGateway, coord: Optional[GuessCoordinator] = None):
    global gateway, coordinator
    gateway = gw
    coordinator = coord or GuessCoordinator(gw, config.polling)


def _gateway() -> ContractGateway:
    if gateway is None:
        configure(ContractGateway.from_config(config))
    return gateway


def _coordinator() -> GuessCoordinator:
    _gateway()
    return coordinator


def _with_links(state: dict) -> dict:
    if state.get("tx_hash"):
        state["tx_url"] = config.network.tx_url(state["tx_hash"])
    result = state.get("result")
    if result and result.get("tx_hash"):
        result["tx_url"] = config.network.tx_url(result["tx_hash"])
    return state


@app.errorhandler(Exception)
def handle_exception(e):
    if isinstance(e, HTTPException):
        return jsonify({"error": e.description}), e.code
    if isinstance(e, PreconditionViolation):
        return jsonify({"error": str(e), "code": e.code}), 400
    if isinstance(e, RejectedByContract):
        return jsonify({"error": str(e), "code": e.kind, "reason": e.reason}), 422
    if isinstance(e, TransportError):
        return jsonify({"error": str(e), "code": e.kind}), 502
    if isinstance(e, GuessGameError):
        return jsonify({"error": str(e), "code": e.kind}), 500
    logger.exception("Unhandled error")
    return jsonify({"error": str(e)}), 500


@app.route('/health', methods=['GET', 'HEAD'])
def health():
    return jsonify({"ok": True}), 200


@app.route('/overview', methods=['GET'])
def overview():
    gw = _gateway()
    player = request.args.get("player") or gw.player
    res = load_overview(gw, player).to_dict()
    res["contract_url"] = config.network.address_url(gw.address)
    return jsonify(res)


@app.route('/stats/<address>', methods=['GET'])
def stats(address):
    return jsonify(_gateway().player_stats(address).to_dict())


@app.route('/cooldown/<address>', methods=['GET'])
def cooldown(address):
    return jsonify({"cooldown_remaining": _gateway().cooldown_remaining(address)})


@app.route('/guess', methods=['POST'])
def guess():
    data = request.json or {}
    crypto = data.get("crypto", "")
    if not crypto:
        return jsonify({"error": "crypto required"}), 400
    state = asyncio.run(_coordinator().submit(
        crypto=crypto,
        price_text=str(data.get("price", "")),
        test=bool(data.get("test", False)),
    ))
    return jsonify(_with_links(state.to_dict()))


@app.route('/guess/state', methods=['GET'])
def guess_state():
    return jsonify(_with_links(_coordinator().state.to_dict()))


@app.route('/guess/abandon', methods=['POST'])
def guess_abandon():
    coord = _coordinator()
    coord.abandon()
    return jsonify(coord.state.to_dict())


@app.route('/guess/reset', methods=['POST'])
def guess_reset():
    return jsonify(_coordinator().reset().to_dict())


@app.route('/result/<int:request_id>', methods=['GET'])
def result(request_id):
    from_block = request.args.get("from_block", 0, type=int)
    res = _coordinator().lookup(request_id, from_block)
    if res is None:
        return jsonify({"request_id": request_id, "resolved": False})
    out = res.to_dict()
    out["resolved"] = True
    return jsonify(_with_links({"result": out})["result"])


@app.route('/fund', methods=['POST'])
def fund():
    data = request.json or {}
    gw = _gateway()
    amount = parse_ether(str(data.get("amount", "")))
    tx_hash = gw.fund_pool(amount)
    gw.wait_for_receipt(tx_hash, timeout=config.polling.receipt_timeout,
                        interval=config.polling.receipt_interval)
    return jsonify({"tx_hash": tx_hash, "tx_url": config.network.tx_url(tx_hash), "status": "Pool funded!"})


if __name__ == '__main__':
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    port = int(os.getenv("PORT", "5000"))
    app.run(host="0.0.0.0", port=port, debug=os.getenv("FLASK_DEBUG", "0") == "1")
