from __future__ import annotations

from flask import Blueprint, jsonify

from ..errors import NotFound
from ..schemas import DrawRequest, InjectFundsRequest, RoundResponse, StartRoundRequest
from .common import caller_identity, get_service, parse_body

bp = Blueprint("rounds", __name__)


@bp.get("/current")
def current_round():
    service = get_service()
    round_id = service.view_current_round_id()
    if round_id == 0:
        raise NotFound("No round started yet")
    return jsonify(RoundResponse.from_record(service.view_round(round_id)).model_dump())


@bp.get("/<int:round_id>")
def get_round(round_id: int):
    record = get_service().view_round(round_id)
    return jsonify(RoundResponse.from_record(record).model_dump())


@bp.post("")
def start_round():
    data = parse_body(StartRoundRequest)
    round_id = get_service().start_round(
        caller_identity(),
        end_time=data.end_time,
        ticket_price=data.ticket_price,
        discount_divisor=data.discount_divisor,
        rewards_breakdown=data.rewards_breakdown,
        treasury_fee=data.treasury_fee,
    )
    return jsonify({"round_id": round_id}), 201


@bp.post("/<int:round_id>/close")
def close_round(round_id: int):
    service = get_service()
    service.close_round(caller_identity(), round_id)
    return jsonify(RoundResponse.from_record(service.view_round(round_id)).model_dump())


@bp.post("/<int:round_id>/draw")
def draw_round(round_id: int):
    data = parse_body(DrawRequest)
    service = get_service()
    service.draw_and_make_claimable(caller_identity(), round_id, data.auto_injection)
    return jsonify(RoundResponse.from_record(service.view_round(round_id)).model_dump())


@bp.post("/<int:round_id>/inject")
def inject_funds(round_id: int):
    data = parse_body(InjectFundsRequest)
    collected = get_service().inject_funds(caller_identity(), round_id, data.amount)
    return jsonify({"round_id": round_id, "amount_collected": str(collected)})


@bp.get("/<int:round_id>/rewards/<int:ticket_id>/<int:bracket>")
def reward_for_ticket(round_id: int, ticket_id: int, bracket: int):
    reward = get_service().view_reward_for_ticket(round_id, ticket_id, bracket)
    return jsonify({"round_id": round_id, "ticket_id": ticket_id, "bracket": bracket, "reward": str(reward)})
