"""Staff member routes"""
from flask import render_template, redirect, url_for, flash, request, current_app
from flask_login import login_required
from pmcmicro import db
from pmcmicro.staff import staff_bp
from pmcmicro.models import StaffMember
from pmcmicro.staff.forms import StaffMemberForm
from pmcmicro.utils.decorators import roles_required, branch_required
from pmcmicro.utils.helpers import request_branch_id, log_activity

@staff_bp.route('/')
@login_required
def list_staff():
    """List staff members of the branch"""
    branch_id = request_branch_id()
    query = StaffMember.query
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)

    search = request.args.get('search', '')
    if search:
        query = query.filter(db.or_(
            StaffMember.full_name.ilike(f'%{search}%'),
            StaffMember.staff_id.ilike(f'%{search}%')
        ))

    staff = query.order_by(StaffMember.full_name).all()
    return render_template('staff/list.html', title='Staff', staff=staff, search=search, branch_id=branch_id)

@staff_bp.route('/add', methods=['GET', 'POST'])
@login_required
@roles_required('admin', 'branch')
@branch_required
def add_staff():
    """Register a staff member"""
    branch_id = request_branch_id()
    form = StaffMemberForm()

    if form.validate_on_submit():
        staff_id = form.staff_id.data.strip()
        if StaffMember.query.filter_by(branch_id=branch_id, staff_id=staff_id).first():
            flash(f'Staff ID {staff_id} already exists in this branch!', 'danger')
            return render_template('staff/add.html', title='Add Staff', form=form, branch_id=branch_id)

        member = StaffMember(
            staff_id=staff_id,
            full_name=form.full_name.data.strip(),
            gender=form.gender.data or None,
            date_of_birth=form.date_of_birth.data,
            place_of_birth=form.place_of_birth.data,
            nationality=form.nationality.data,
            telephone=form.telephone.data,
            address=form.address.data,
            registration_date=form.registration_date.data,
            branch_id=branch_id
        )
        db.session.add(member)
        db.session.flush()
        log_activity('create_staff', 'staff', member.id, f'Registered staff member: {member.full_name}')
        db.session.commit()

        current_app.logger.info('Staff member %s registered in branch %s', member.staff_id, branch_id)
        flash(f'Staff member {member.full_name} registered successfully!', 'success')
        return redirect(url_for('staff.list_staff', branch=branch_id))

    return render_template('staff/add.html', title='Add Staff', form=form, branch_id=branch_id)

@staff_bp.route('/<int:id>/delete', methods=['POST'])
@login_required
@roles_required('admin', 'branch')
def delete_staff(id):
    """Remove a staff member"""
    member = db.get_or_404(StaffMember, id)
    branch_id = request_branch_id()
    if branch_id is not None and member.branch_id != branch_id:
        flash('Access denied: Staff member not found in current branch.', 'danger')
        return redirect(url_for('staff.list_staff'))

    log_activity('delete_staff', 'staff', member.id, f'Deleted staff member: {member.full_name}')
    db.session.delete(member)
    db.session.commit()

    flash('Staff member deleted successfully!', 'success')
    return redirect(url_for('staff.list_staff', branch=member.branch_id))
