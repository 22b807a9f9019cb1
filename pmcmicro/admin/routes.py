"""Administration routes: companies, branches and user accounts"""
from flask import render_template, redirect, url_for, flash, current_app
from flask_login import login_required, current_user
from pmcmicro import db
from pmcmicro.admin import admin_bp
from pmcmicro.models import Company, Branch, User, Loan
from pmcmicro.admin.forms import CompanyForm, BranchForm, UserForm
from pmcmicro.utils.decorators import admin_required
from pmcmicro.utils.helpers import log_activity

@admin_bp.route('/companies', methods=['GET', 'POST'])
@login_required
@admin_required
def companies():
    """List and register companies"""
    form = CompanyForm()
    if form.validate_on_submit():
        company = Company(
            company_name=form.company_name.data.strip(),
            short_code=form.short_code.data,
            status=form.status.data
        )
        db.session.add(company)
        db.session.flush()
        log_activity('create_company', 'company', company.id, f'Created company: {company.short_code}')
        db.session.commit()

        flash(f'Company {company.short_code} registered successfully!', 'success')
        return redirect(url_for('admin.companies'))

    companies = Company.query.order_by(Company.company_name).all()
    return render_template('admin/companies.html', title='Companies', form=form, companies=companies)

@admin_bp.route('/companies/<int:id>/toggle', methods=['POST'])
@login_required
@admin_required
def toggle_company(id):
    company = db.get_or_404(Company, id)
    company.status = 'inactive' if company.status == 'active' else 'active'
    log_activity('update_company', 'company', company.id, f'Company {company.short_code} set {company.status}')
    db.session.commit()
    flash(f'Company {company.short_code} is now {company.status}.', 'success')
    return redirect(url_for('admin.companies'))

@admin_bp.route('/branches')
@login_required
@admin_required
def branches():
    """List all branches"""
    branches = Branch.query.order_by(Branch.branch_name).all()
    return render_template('admin/branches.html', title='Branches', branches=branches)

@admin_bp.route('/branches/add', methods=['GET', 'POST'])
@login_required
@admin_required
def add_branch():
    """Add new branch"""
    form = BranchForm()

    if form.validate_on_submit():
        if Branch.query.filter_by(branch_id=form.branch_id.data.strip()).first():
            flash('Branch code already exists!', 'danger')
            return render_template('admin/branch_form.html', title='Add Branch', form=form)

        branch = Branch(
            branch_id=form.branch_id.data.strip(),
            branch_name=form.branch_name.data,
            branch_location=form.branch_location.data,
            branch_manager=form.branch_manager.data,
            company_id=form.company_id.data or None,
            is_active=form.is_active.data
        )
        db.session.add(branch)
        db.session.flush()
        log_activity('create_branch', 'branch', branch.id, f'Created branch: {branch.branch_name}')
        db.session.commit()

        current_app.logger.info('Branch %s created by %s', branch.branch_id, current_user.username)
        flash(f'Branch {branch.branch_name} created successfully!', 'success')
        return redirect(url_for('admin.branches'))

    return render_template('admin/branch_form.html', title='Add Branch', form=form)

@admin_bp.route('/branches/<int:id>/edit', methods=['GET', 'POST'])
@login_required
@admin_required
def edit_branch(id):
    """Edit branch"""
    branch = db.get_or_404(Branch, id)
    form = BranchForm(obj=branch)

    if form.validate_on_submit():
        duplicate = Branch.query.filter(Branch.branch_id == form.branch_id.data.strip(), Branch.id != branch.id).first()
        if duplicate:
            flash('Branch code already exists!', 'danger')
            return render_template('admin/branch_form.html', title='Edit Branch', form=form, branch=branch)

        branch.branch_id = form.branch_id.data.strip()
        branch.branch_name = form.branch_name.data
        branch.branch_location = form.branch_location.data
        branch.branch_manager = form.branch_manager.data
        branch.company_id = form.company_id.data or None
        branch.is_active = form.is_active.data

        log_activity('update_branch', 'branch', branch.id, f'Updated branch: {branch.branch_name}')
        db.session.commit()

        flash('Branch updated successfully!', 'success')
        return redirect(url_for('admin.branches'))

    return render_template('admin/branch_form.html', title='Edit Branch', form=form, branch=branch)

@admin_bp.route('/branches/<int:id>/delete', methods=['POST'])
@login_required
@admin_required
def delete_branch(id):
    """Delete branch"""
    branch = db.get_or_404(Branch, id)

    if Loan.query.filter_by(branch_id=branch.id).count() > 0 or branch.users.count() > 0:
        flash('Cannot delete a branch that has loans or users. Deactivate it instead.', 'danger')
        return redirect(url_for('admin.branches'))

    log_activity('delete_branch', 'branch', branch.id, f'Deleted branch: {branch.branch_name}')
    db.session.delete(branch)
    db.session.commit()

    flash('Branch deleted successfully!', 'success')
    return redirect(url_for('admin.branches'))

@admin_bp.route('/users')
@login_required
@admin_required
def list_users():
    """List all users"""
    users = User.query.order_by(User.created_at.desc()).all()
    return render_template('admin/users.html', title='Users', users=users)

@admin_bp.route('/users/add', methods=['GET', 'POST'])
@login_required
@admin_required
def add_user():
    """Add new user"""
    form = UserForm()

    if form.validate_on_submit():
        user = User(
            username=form.username.data,
            full_name=form.full_name.data,
            user_code=form.user_code.data,
            role=form.role.data,
            branch_id=form.branch_id.data or None,
            staff_name=(form.staff_name.data or '').strip() or None,
            is_active=form.is_active.data
        )
        if user.sees_all_branches:
            user.branch_id = None
        user.set_password(form.password.data)
        db.session.add(user)
        db.session.flush()

        log_activity('create_user', 'user', user.id, f'Created user: {user.username} with role: {user.role}')
        db.session.commit()

        flash(f'User {user.username} created successfully!', 'success')
        return redirect(url_for('admin.list_users'))

    return render_template('admin/user_form.html', title='Add User', form=form)

@admin_bp.route('/users/<int:id>/toggle', methods=['POST'])
@login_required
@admin_required
def toggle_user(id):
    """Activate or deactivate a user"""
    user = db.get_or_404(User, id)
    if user.id == current_user.id:
        flash('You cannot deactivate your own account!', 'danger')
        return redirect(url_for('admin.list_users'))

    user.is_active = not user.is_active
    state = 'activated' if user.is_active else 'deactivated'
    log_activity('update_user', 'user', user.id, f'User {user.username} {state}')
    db.session.commit()

    flash(f'User {user.username} {state}.', 'success')
    return redirect(url_for('admin.list_users'))
