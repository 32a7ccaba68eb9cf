from flask import Blueprint, g, render_template

from app.adminkit.db import db_session
from app.adminkit.gates import gate_chain
from app.adminkit.models import AccountClass
from app.adminkit.modules.accounts.service import AccountService

bp = Blueprint("dashboard", __name__)
bp.before_request(gate_chain(account_class=AccountClass.DASHBOARD))


@bp.get("/home")
def home():
    total = AccountService(db_session()).count_accounts()
    return render_template("dashboard/home.html", account=g.current_account, total_accounts=total)
