"""Client and group routes"""
from datetime import date
from flask import render_template, redirect, url_for, flash, request, current_app
from flask_login import login_required, current_user
from pmcmicro import db
from pmcmicro.clients import clients_bp
from pmcmicro.models import Client, Group
from pmcmicro.clients.forms import ClientForm, BulkClientForm, GroupForm, group_choices
from pmcmicro.finance import aggregators
from pmcmicro.store import load_snapshot, StoreError
from pmcmicro.utils.decorators import roles_required, branch_required
from pmcmicro.utils.helpers import (
    request_branch_id, generate_client_id, split_client_names, log_activity
)

@clients_bp.route('/')
@login_required
def list_clients():
    """List clients"""
    page = request.args.get('page', 1, type=int)
    search = request.args.get('search', '')
    group_id = request.args.get('group_id', '')
    branch_id = request_branch_id()

    query = Client.query
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    if search:
        query = query.filter(db.or_(
            Client.full_name.ilike(f'%{search}%'),
            Client.client_id.ilike(f'%{search}%')
        ))
    if group_id:
        query = query.filter_by(group_id=group_id)

    clients = query.order_by(Client.id.desc()).paginate(
        page=page, per_page=current_app.config['ITEMS_PER_PAGE'], error_out=False
    )

    return render_template('clients/list.html',
                         title='Clients',
                         clients=clients,
                         search=search,
                         group_id=group_id,
                         branch_id=branch_id)

@clients_bp.route('/add', methods=['GET', 'POST'])
@login_required
@roles_required('admin', 'branch', 'staff')
@branch_required
def add_client():
    """Register a client with the next client id"""
    branch_id = request_branch_id()
    form = ClientForm()
    form.group_id.choices = group_choices(branch_id)

    if form.validate_on_submit():
        client = Client(
            client_id=generate_client_id(branch_id),
            full_name=form.full_name.data.strip(),
            gender=form.gender.data or None,
            telephone=form.telephone.data,
            address=form.address.data,
            group_id=form.group_id.data or None,
            registration_date=form.registration_date.data or date.today(),
            branch_id=branch_id
        )
        db.session.add(client)
        db.session.flush()
        log_activity('create_client', 'client', client.id, f'Registered client: {client.client_id} {client.full_name}')
        db.session.commit()

        flash(f'Client {client.full_name} registered as {client.client_id}!', 'success')
        return redirect(url_for('clients.view_client', id=client.id))

    return render_template('clients/add.html', title='Register Client', form=form, branch_id=branch_id)

@clients_bp.route('/bulk', methods=['GET', 'POST'])
@login_required
@roles_required('admin', 'branch')
@branch_required
def bulk_upload():
    """Register several clients from a pasted list of names"""
    branch_id = request_branch_id()
    form = BulkClientForm()
    form.group_id.choices = group_choices(branch_id)

    if form.validate_on_submit():
        names = split_client_names(form.names.data)
        if not names:
            flash('No client names found.', 'warning')
            return render_template('clients/bulk.html', title='Bulk Client Upload', form=form, branch_id=branch_id)

        created = []
        for name in names:
            client = Client(
                client_id=generate_client_id(branch_id),
                full_name=name,
                group_id=form.group_id.data or None,
                registration_date=date.today(),
                branch_id=branch_id
            )
            db.session.add(client)
            # flush so the next id sees this one
            db.session.flush()
            created.append(client)

        log_activity('bulk_create_clients', 'client', None,
                     f'Registered {len(created)} clients: {created[0].client_id} to {created[-1].client_id}')
        db.session.commit()

        current_app.logger.info('Bulk registered %d clients in branch %s', len(created), branch_id)
        flash(f'{len(created)} clients registered successfully!', 'success')
        return redirect(url_for('clients.list_clients', branch=branch_id))

    return render_template('clients/bulk.html', title='Bulk Client Upload', form=form, branch_id=branch_id)

@clients_bp.route('/<int:id>')
@login_required
def view_client(id):
    """Client details with loans and savings"""
    client = db.get_or_404(Client, id)
    branch_id = request_branch_id()
    if branch_id is not None and client.branch_id != branch_id:
        flash('Access denied: Client not found in current branch.', 'danger')
        return redirect(url_for('clients.list_clients'))

    loans = []
    savings = None
    try:
        snapshot = load_snapshot(client.branch_id)
    except StoreError:
        current_app.logger.exception('Client %s records unavailable', client.client_id)
        flash('Could not load client records. Please try again.', 'danger')
    else:
        loans = aggregators.client_report(snapshot, client_id=client.client_id)
        balances = aggregators.savings_balances(snapshot.savings, snapshot.withdrawals, client_id=client.client_id)
        savings = balances[0] if balances else None

    return render_template('clients/view.html',
                         title=f'Client: {client.full_name}',
                         client=client,
                         loans=loans,
                         savings=savings)

@clients_bp.route('/groups', methods=['GET', 'POST'])
@login_required
def groups():
    """List groups and register new ones"""
    branch_id = request_branch_id()
    form = GroupForm()

    if form.validate_on_submit():
        if not current_user.can_write:
            flash('Your account has read-only access.', 'danger')
            return redirect(url_for('clients.groups'))
        if branch_id is None:
            flash('Select a branch first.', 'warning')
            return redirect(url_for('clients.groups'))

        group_id = form.group_id.data.strip()
        if Group.query.filter_by(branch_id=branch_id, group_id=group_id).first():
            flash(f'Group ID {group_id} already exists!', 'danger')
        else:
            group = Group(group_id=group_id, group_name=form.group_name.data.strip(), branch_id=branch_id)
            db.session.add(group)
            db.session.flush()
            log_activity('create_group', 'group', group.id, f'Created group: {group.group_id} {group.group_name}')
            db.session.commit()
            flash(f'Group {group.group_name} created successfully!', 'success')
            return redirect(url_for('clients.groups', branch=branch_id))

    query = Group.query
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    groups = query.order_by(Group.group_name).all()

    return render_template('clients/groups.html', title='Groups', form=form, groups=groups, branch_id=branch_id)
