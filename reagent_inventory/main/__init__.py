from flask import Blueprint

bp = Blueprint('main', __name__)

from reagent_inventory.main import routes  # noqa: E402,F401
