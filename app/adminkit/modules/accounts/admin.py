from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.adminkit.db import db_session
from app.adminkit.errors import AppError, DuplicateRecord, MissingActor, NotFound
from app.adminkit.gates import gate_chain
from app.adminkit.listing import ListParams
from app.adminkit.models import AccountClass
from app.adminkit.modules.accounts.service import AccountService, account_to_dict, validate_account_payload

bp = Blueprint("accounts", __name__)
bp.before_request(gate_chain(account_class=AccountClass.DASHBOARD))

_STATUS_BY_CODE = {
    NotFound.code: 404,
    DuplicateRecord.code: 409,
    MissingActor.code: 400,
}


def _payload() -> dict:
    if request.is_json:
        return dict(request.get_json(silent=True) or {})
    return request.form.to_dict()


def _error(e: AppError):
    status = _STATUS_BY_CODE.get(e.code, 500)
    if status == 500:
        current_app.logger.error("Account admin error code=%s request_id=%s", e.code, getattr(g, "request_id", None))
    return jsonify({"error": {"code": e.code, "message": str(e)}}), status


# ---------- List ----------
@bp.get("/users")
def users_list():
    cfg = current_app.config
    params = ListParams.from_args(
        request.args,
        default_per_page=int(cfg.get("DEFAULT_PER_PAGE") or 20),
        max_per_page=int(cfg.get("MAX_PER_PAGE") or 100),
    )
    try:
        result = AccountService(db_session()).list_accounts(params)
    except AppError as e:
        return _error(e)
    return jsonify(result.to_dict(account_to_dict))


# ---------- Detail ----------
@bp.get("/users/<int:account_id>")
def users_detail(account_id: int):
    try:
        account = AccountService(db_session()).get_account(account_id)
    except AppError as e:
        return _error(e)
    return jsonify({"data": account_to_dict(account)})


# ---------- Create ----------
@bp.post("/users/create")
def users_create():
    payload = _payload()
    errors = validate_account_payload(
        payload, creating=True, password_min_length=int(current_app.config.get("PASSWORD_MIN_LENGTH") or 6)
    )
    if errors:
        return jsonify({"errors": errors}), 400
    try:
        account = AccountService(db_session()).create_account(payload, g.current_account.id)
    except AppError as e:
        return _error(e)
    return jsonify({"data": account_to_dict(account)}), 201


# ---------- Update ----------
@bp.post("/users/<int:account_id>/update")
def users_update(account_id: int):
    payload = _payload()
    errors = validate_account_payload(
        payload, creating=False, password_min_length=int(current_app.config.get("PASSWORD_MIN_LENGTH") or 6)
    )
    if errors:
        return jsonify({"errors": errors}), 400
    service = AccountService(db_session())
    try:
        service.update_account(account_id, payload, g.current_account.id)
        account = service.get_account(account_id)
    except AppError as e:
        return _error(e)
    return jsonify({"data": account_to_dict(account)})


# ---------- Delete ----------
@bp.post("/users/<int:account_id>/delete")
def users_delete(account_id: int):
    if account_id == g.current_account.id:
        return jsonify({"error": {"code": "self_delete", "message": "You cannot delete your own account."}}), 400
    try:
        AccountService(db_session()).delete_account(account_id, g.current_account.id)
    except AppError as e:
        return _error(e)
    return jsonify({"ok": True})
