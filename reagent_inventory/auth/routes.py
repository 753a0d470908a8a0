from flask import current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_user, logout_user, login_required
from sqlalchemy.exc import IntegrityError
from reagent_inventory.auth import bp
from reagent_inventory.auth.decorators import role_home_url
from reagent_inventory.auth.forms import LoginForm, SignupForm
from reagent_inventory.models.user import User
from reagent_inventory.extensions import db, limiter


@bp.route('/login', methods=['GET', 'POST'])
@limiter.limit("5 per minute")  # Protect against brute force
def login():
    if current_user.is_authenticated:
        return redirect(role_home_url(current_user))

    form = LoginForm()
    if form.validate_on_submit():
        user = User.query.filter_by(email=form.email.data.strip().lower()).first()
        if user is None or not user.check_password(form.password.data):
            flash('Invalid email or password', 'error')
            return render_template('auth/login.html', form=form, title='Sign In')

        if not user.is_active:
            flash('Your account has been deactivated. Contact an administrator.', 'error')
            return render_template('auth/login.html', form=form, title='Sign In')

        login_user(user, remember=form.remember_me.data)
        user.update_last_login()
        next_page = request.args.get('next')
        if not next_page or not next_page.startswith('/'):
            next_page = role_home_url(user)
        return redirect(next_page)

    return render_template('auth/login.html', form=form, title='Sign In')


@bp.route('/signup', methods=['GET', 'POST'])
@limiter.limit("10 per hour")
def signup():
    if current_user.is_authenticated:
        return redirect(role_home_url(current_user))

    is_first_user = User.query.count() == 0
    form = SignupForm()
    if form.validate_on_submit():
        user = User(
            email=form.email.data,
            full_name=form.full_name.data.strip(),
            role='admin' if is_first_user else 'technician'
        )
        user.set_password(form.password.data)
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            flash('An account with this email already exists', 'error')
            return render_template('auth/signup.html', form=form,
                                   is_first_user=is_first_user, title='Sign Up')

        current_app.logger.info(f'New {user.role} account: {user.email}')
        login_user(user)
        flash('Account created!', 'success')
        return redirect(role_home_url(user))

    return render_template('auth/signup.html', form=form,
                           is_first_user=is_first_user, title='Sign Up')


@bp.route('/logout')
@login_required
def logout():
    logout_user()
    return redirect(url_for('auth.login'))
