"""Access control decorators"""
from functools import wraps
from flask import flash, redirect, url_for
from flask_login import current_user

def _guard(allowed, message, category='danger'):
    """Build a decorator that lets a signed-in user through when ``allowed()`` holds"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                flash('Please log in to access this page.', 'warning')
                return redirect(url_for('auth.login'))

            if not allowed():
                flash(message, category)
                return redirect(url_for('main.dashboard'))

            return f(*args, **kwargs)
        return decorated_function
    return decorator

def roles_required(*roles):
    """Restrict a view to the given roles"""
    return _guard(lambda: current_user.role in roles, 'You do not have permission to access this page.')

admin_required = _guard(lambda: current_user.role == 'admin', 'Admin access required.')

# CEO accounts are read-only
write_access_required = _guard(lambda: current_user.can_write, 'Your account has read-only access.')

def _has_branch():
    from pmcmicro.utils.helpers import request_branch_id
    return request_branch_id() is not None

# Views that work on a single branch; head office users pass ?branch=<id>
branch_required = _guard(_has_branch, 'Select a branch first.', 'warning')
