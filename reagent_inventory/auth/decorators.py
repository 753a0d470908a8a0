from functools import wraps
from flask import abort, flash, redirect, url_for
from flask_login import current_user


def admin_required(f):
    """Decorator to restrict access to admin users only.

    This decorator checks if the current user is both authenticated
    and has the admin role. Anonymous users are sent to the login page,
    signed-in technicians get a 403 Forbidden response.

    Args:
        f: The view function to decorate

    Returns:
        decorated_function: The decorated view function

    Raises:
        403: If user is authenticated but not an admin
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            flash('Please log in to access this page.', 'warning')
            return redirect(url_for('auth.login'))

        if not current_user.is_admin():
            abort(403)  # Forbidden

        return f(*args, **kwargs)
    return decorated_function


def role_home_url(user):
    """Landing page for a signed-in user based on their role."""
    if user.is_admin():
        return url_for('admin.dashboard')
    return url_for('main.pick_category', action='withdraw')
