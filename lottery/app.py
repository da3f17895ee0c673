from __future__ import annotations

from typing import Optional, Tuple

from flask import Flask, jsonify
from pydantic import ValidationError as SchemaError
from werkzeug.exceptions import HTTPException

from .config import AppSettings, load_settings
from .db import create_session_factory
from .errors import LotteryError
from .routes.admin import bp as admin_bp
from .routes.randomness import bp as randomness_bp
from .routes.rounds import bp as rounds_bp
from .routes.tickets import bp as tickets_bp
from .services.lifecycle import LotteryService
from .services.randomness import LocalRandomnessSource, RandomnessSource
from .services.token import InMemoryTokenLedger, TokenLedger


def build_collaborators(settings: AppSettings) -> Tuple[TokenLedger, RandomnessSource]:
    web3_settings = settings.web3
    if not web3_settings.enabled:
        return InMemoryTokenLedger(settings.payment_token), LocalRandomnessSource()

    from .services.blockchain import (
        ContractRandomnessSource,
        Erc20TokenLedger,
        connect,
        contract_at,
    )

    if not web3_settings.signer_key:
        raise RuntimeError("Missing required environment variable: LOTTERY_SIGNER")
    web3 = connect(web3_settings.rpc_url)
    token = Erc20TokenLedger(
        web3,
        contract_at(web3, web3_settings.payment_token_address, web3_settings.payment_token_abi_path),
        web3_settings.signer_key,
        token_id=settings.payment_token,
    )
    randomness = ContractRandomnessSource(
        web3,
        contract_at(web3, web3_settings.randomness_address, web3_settings.randomness_abi_path),
        web3_settings.signer_key,
    )
    return token, randomness


def build_service(settings: AppSettings) -> LotteryService:
    token, randomness = build_collaborators(settings)
    session_factory = create_session_factory(settings.database_url)
    return LotteryService.from_settings(settings, session_factory, token, randomness)


def create_app(
    settings: Optional[AppSettings] = None, service: Optional[LotteryService] = None
) -> Flask:
    settings = settings or load_settings()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.flask.secret_key
    app.extensions["lottery.settings"] = settings
    app.extensions["lottery.service"] = service or build_service(settings)

    app.register_blueprint(rounds_bp, url_prefix="/rounds")
    app.register_blueprint(tickets_bp)
    app.register_blueprint(randomness_bp, url_prefix="/randomness")
    app.register_blueprint(admin_bp, url_prefix="/admin/api")

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.errorhandler(LotteryError)
    def handle_lottery_error(exc: LotteryError):
        app.logger.info("Rejected: %s (%s)", exc.reason, type(exc).__name__)
        return jsonify({"error": exc.reason, "kind": type(exc).__name__}), exc.status_code

    @app.errorhandler(SchemaError)
    def handle_schema_error(exc: SchemaError):
        errors = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]
        return jsonify({"error": "invalid request", "details": errors}), 400

    @app.errorhandler(Exception)
    def handle_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("Unhandled error: %s", exc)
        return jsonify({"error": str(exc)}), 500

    return app
