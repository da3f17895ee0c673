from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..schemas import (
    FaucetRequest,
    MaxTicketsRequest,
    RecoverFundsRequest,
    RoleAddressesRequest,
    RoundResponse,
)
from .common import caller_identity, get_service, get_settings, parse_body

bp = Blueprint("admin", __name__)


def _require_admin() -> bool:
    api_key = get_settings().admin_api_key
    if api_key:
        provided = request.headers.get("X-Admin-Token")
        if provided != api_key:
            return False
    return True


@bp.before_request
def verify_admin():
    if not _require_admin():
        return jsonify({"error": "unauthorized"}), 401
    return None


@bp.get("/rounds")
def list_rounds():
    limit = request.args.get("limit", type=int)
    rounds = get_service().view_rounds(limit)
    return jsonify([RoundResponse.from_record(record).model_dump() for record in rounds])


@bp.get("/roles")
def list_roles():
    service = get_service()
    return jsonify({"roles": service.view_roles(), "max_tickets_per_call": service.view_max_tickets_per_call()})


@bp.put("/max-tickets")
def set_max_tickets():
    data = parse_body(MaxTicketsRequest)
    get_service().set_max_tickets_per_call(caller_identity(), data.max_tickets)
    return jsonify({"max_tickets_per_call": data.max_tickets})


@bp.put("/roles")
def set_roles():
    data = parse_body(RoleAddressesRequest)
    service = get_service()
    service.set_role_addresses(caller_identity(), data.operator, data.treasury, data.injector)
    return jsonify({"roles": service.view_roles()})


@bp.post("/recover")
def recover_funds():
    data = parse_body(RecoverFundsRequest)
    get_service().recover_foreign_funds(caller_identity(), data.token_id, data.amount)
    return jsonify({"token_id": data.token_id, "amount": str(data.amount)})


@bp.post("/faucet")
def faucet():
    """Development helper: only works with the in-memory payment token."""
    data = parse_body(FaucetRequest)
    balance = get_service().faucet(data.identity, data.amount)
    return jsonify({"identity": data.identity, "balance": str(balance)})
