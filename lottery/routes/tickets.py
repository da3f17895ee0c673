from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..errors import ValidationError
from ..schemas import (
    BuyTicketsRequest,
    ClaimResponse,
    ClaimTicketsRequest,
    PurchaseResponse,
    TicketsForOwnerResponse,
    TicketStatusesResponse,
)
from .common import caller_identity, get_service, parse_body

bp = Blueprint("tickets", __name__)


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"invalid {name}") from exc


@bp.post("/rounds/<int:round_id>/tickets")
def buy_tickets(round_id: int):
    data = parse_body(BuyTicketsRequest)
    ticket_ids = get_service().buy_tickets(caller_identity(), round_id, data.combinations)
    response = PurchaseResponse(round_id=round_id, ticket_ids=ticket_ids)
    return jsonify(response.model_dump()), 201


@bp.get("/rounds/<int:round_id>/tickets")
def tickets_for_owner(round_id: int):
    owner = request.args.get("owner") or caller_identity()
    if not owner:
        raise ValidationError("owner is required")
    page = get_service().view_tickets_for_owner(
        owner, round_id, offset=_int_arg("offset", 0), limit=_int_arg("limit", 100)
    )
    response = TicketsForOwnerResponse(owner=owner, round_id=round_id, **page)
    return jsonify(response.model_dump())


@bp.post("/rounds/<int:round_id>/claims")
def claim_tickets(round_id: int):
    data = parse_body(ClaimTicketsRequest)
    amount = get_service().claim_tickets(caller_identity(), round_id, data.ticket_ids, data.brackets)
    response = ClaimResponse(round_id=round_id, amount=str(amount), ticket_count=len(data.ticket_ids))
    return jsonify(response.model_dump())


@bp.get("/tickets")
def ticket_statuses():
    raw_ids = request.args.get("ids", "")
    try:
        ticket_ids = [int(part) for part in raw_ids.split(",") if part.strip()]
    except ValueError as exc:
        raise ValidationError("invalid ticket id") from exc
    combinations, claimed = get_service().view_combinations_and_statuses(ticket_ids)
    response = TicketStatusesResponse(ticket_ids=ticket_ids, combinations=combinations, claimed=claimed)
    return jsonify(response.model_dump())


@bp.get("/pricing")
def bulk_price():
    price = get_service().calculate_total_price(
        _int_arg("discount_divisor", 0), _int_arg("unit_price", 0), _int_arg("count", 0)
    )
    return jsonify({"price": str(price)})
