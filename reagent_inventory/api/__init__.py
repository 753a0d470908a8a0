from flask import Blueprint

bp = Blueprint('api', __name__)

from reagent_inventory.api import routes  # noqa: E402,F401
