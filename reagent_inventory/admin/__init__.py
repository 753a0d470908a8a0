from flask import Blueprint

bp = Blueprint('admin', __name__)

from reagent_inventory.admin import routes  # noqa: E402,F401
