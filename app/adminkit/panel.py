from flask import Blueprint, g, render_template

from app.adminkit.gates import gate_chain
from app.adminkit.models import AccountClass

bp = Blueprint("panel", __name__)
bp.before_request(gate_chain(account_class=AccountClass.PANEL, verified=True))


@bp.get("/home")
def home():
    return render_template("panel/home.html", account=g.current_account)
