from flask import Blueprint

bp = Blueprint('auth', __name__)

from reagent_inventory.auth import routes  # noqa: E402,F401
