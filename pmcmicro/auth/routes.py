"""Authentication routes"""
from datetime import datetime
from urllib.parse import urlparse
from flask import render_template, redirect, url_for, flash, request, current_app
from flask_login import login_user, logout_user, current_user, login_required
from pmcmicro import db
from pmcmicro.auth import auth_bp
from pmcmicro.models import User
from pmcmicro.auth.forms import LoginForm, ChangePasswordForm
from pmcmicro.utils.helpers import log_activity

def _landing_page():
    """Local ``next`` target, or the dashboard"""
    target = request.args.get('next')
    if target and not urlparse(target).netloc:
        return target
    return url_for('main.dashboard')

@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    """Sign in with username and password"""
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))

    form = LoginForm()
    if not form.validate_on_submit():
        return render_template('auth/login.html', title='Sign In', form=form)

    user = User.query.filter_by(username=form.username.data.strip()).first()
    if user is None or not user.check_password(form.password.data):
        current_app.logger.info('Failed login for %s', form.username.data)
        flash('Invalid username or password', 'danger')
        return redirect(url_for('auth.login'))

    if not user.is_active:
        flash('This account is disabled. Ask an administrator to re-enable it.', 'danger')
        return redirect(url_for('auth.login'))

    login_user(user, remember=form.remember_me.data)
    user.last_login = datetime.utcnow()
    scope = user.branch.branch_name if user.branch else 'all branches'
    log_activity('login', 'user', user.id, f'{user.username} signed in ({user.role}, {scope})')
    db.session.commit()

    flash(f'Welcome back, {user.full_name}!', 'success')
    return redirect(_landing_page())

@auth_bp.route('/logout')
def logout():
    """Sign out"""
    if current_user.is_authenticated:
        log_activity('logout', 'user', current_user.id, f'{current_user.username} signed out')
        db.session.commit()

    logout_user()
    flash('You have been signed out.', 'info')
    return redirect(url_for('auth.login'))

@auth_bp.route('/change-password', methods=['GET', 'POST'])
@login_required
def change_password():
    form = ChangePasswordForm()
    if form.validate_on_submit():
        if not current_user.check_password(form.current_password.data):
            flash('Current password is incorrect', 'danger')
            return redirect(url_for('auth.change_password'))

        current_user.set_password(form.new_password.data)
        log_activity('change_password', 'user', current_user.id, f'{current_user.username} changed password')
        db.session.commit()

        flash('Password changed.', 'success')
        return redirect(url_for('main.dashboard'))

    return render_template('auth/change_password.html', title='Change Password', form=form)
