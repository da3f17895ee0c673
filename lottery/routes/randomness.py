from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..errors import AuthorizationError
from ..schemas import FulfillRandomnessRequest
from .common import caller_identity, get_service, get_settings, parse_body

bp = Blueprint("randomness", __name__)


@bp.get("")
def randomness_status():
    source = get_service().randomness
    payload = {
        "source": source.source_id,
        "latest_fulfilled_round_id": source.latest_fulfilled_round_id(),
        "pending_round_id": getattr(source, "pending_round_id", None),
    }
    return jsonify(payload)


@bp.post("/fulfill")
def fulfill():
    provider = get_settings().roles.randomness_provider
    caller = caller_identity()
    if not provider or caller != provider:
        raise AuthorizationError("Not randomness provider")

    data = parse_body(FulfillRandomnessRequest)
    round_id = get_service().fulfill_randomness(data.random_number, round_id=data.round_id)
    current_app.logger.info("Randomness fulfilled for round %s by %s", round_id, caller)
    return jsonify({"round_id": round_id, "latest_fulfilled_round_id": round_id})
