from flask import (
    Blueprint, abort, current_app, flash, g, jsonify, redirect, render_template, request, url_for
)

from billing_admin.api.auth import admin_required, login_required
from billing_admin.adapters.sqlite.lookups_repo import HmoProviderRepository, PatientRepository, SpecialistRepository
from billing_admin.common.badges import choices
from billing_admin.common.utils import clinic_now
from billing_admin.common.validators import BillingError, ValidationError
from billing_admin.services.activity_logger import log_activity, ActionType, ActionCategory
from billing_admin.services.billing_service import BillingService

bp = Blueprint('billing', __name__, url_prefix='/admin/billing')

ITEM_FIELDS = ('item_type', 'item_name', 'item_description', 'quantity', 'unit_price')


def _service() -> BillingService:
    return BillingService(senior_discount_rate=current_app.config.get('SENIOR_DISCOUNT_RATE', 0.20))


def _list_filters() -> dict:
    return {
        'search': request.args.get('search', '').strip(),
        'status': request.args.get('status', '').strip(),
        'payment_method': request.args.get('payment_method', '').strip(),
        'doctor_id': request.args.get('doctor_id', type=int),
        'date_from': request.args.get('date_from', '').strip(),
        'date_to': request.args.get('date_to', '').strip(),
        'sort': request.args.get('sort', '').strip(),
        'page': request.args.get('page', 1, type=int),
    }


def _form_items() -> list:
    """Rebuild item rows from the parallel item_type[] / item_name[] / ... inputs."""
    columns = {k: request.form.getlist(f'{k}[]') for k in ITEM_FIELDS}
    count = max((len(v) for v in columns.values()), default=0)
    return [
        {k: (columns[k][i] if i < len(columns[k]) else '') for k in ITEM_FIELDS}
        for i in range(count)
    ]


def _form_lookups() -> dict:
    return {
        'patients': PatientRepository().get_all(),
        'doctors': SpecialistRepository().get_active(),
        'hmo_providers': HmoProviderRepository().get_active(),
        'payment_methods': choices('payment_method'),
        'payment_types': choices('payment_type'),
        'item_types': choices('item_type'),
    }


@bp.route('/')
@login_required
def index():
    """Transactions list with filters, summary cards and pagination."""
    tab = request.args.get('tab', 'transactions')
    if tab == 'doctor-payments':
        return redirect(url_for('doctor_payments.index'))
    if tab == 'expenses':
        return redirect(url_for('expenses.index'))

    filters = _list_filters()
    result = _service().list_transactions(filters, current_app.config.get('PAGE_SIZE', 15))
    return render_template(
        'billing/index.html',
        page=result['page'],
        summary=result['summary'],
        filters=filters,
        doctors=SpecialistRepository().get_active(),
        statuses=choices('transaction_status'),
        payment_methods=choices('payment_method'),
    )


@bp.route('/export')
@login_required
def export():
    fmt = request.args.get('format', 'excel')
    try:
        response = _service().export_transactions(_list_filters(), fmt)
    except ValidationError as e:
        flash(e.first_message, 'error')
        return redirect(url_for('billing.index'))

    log_activity(ActionType.REPORT_EXPORT, ActionCategory.REPORT,
                 description=f'Exported billing transactions ({fmt})', target_type='transactions')
    return response


# ---- Create from appointments ----
@bp.route('/create-from-appointments', methods=('GET', 'POST'))
@login_required
def create_from_appointments():
    service = _service()
    errors = {}
    status_code = 200

    if request.method == 'POST':
        data = request.form.to_dict()
        data['appointment_ids'] = request.form.getlist('appointment_ids')
        try:
            tx = service.create_from_appointments(data, g.user['id'])
        except ValidationError as e:
            errors = e.errors
            status_code = 422
            flash(e.first_message, 'error')
        else:
            count = tx['appointments_count']
            log_activity(
                ActionType.TRANSACTION_CREATE, ActionCategory.TRANSACTION,
                description=f"Created {tx['transaction_id']} for {count} appointment(s)",
                target_type='transaction', target_id=tx['id'], target_name=tx['transaction_id'],
                amount=tx['amount'],
            )
            flash(f'Transaction created successfully for {count} appointment(s)!', 'success')
            return redirect(url_for('billing.index'))

    selected = [int(x) for x in (request.form.getlist('appointment_ids') or request.args.getlist('appointment_ids'))
                if str(x).isdigit()]
    return render_template(
        'billing/create_from_appointments.html',
        appointments=service.pending_appointments(),
        hmo_providers=HmoProviderRepository().get_active(),
        selected_ids=selected,
        form=request.form,
        errors=errors,
    ), status_code


@bp.route('/create-from-appointments/preview')
@login_required
def preview_totals():
    """Advisory totals for the selection page; the server recomputes on submit."""
    ids = [int(x) for x in request.args.getlist('appointment_ids') if x.isdigit()]
    is_senior = request.args.get('is_senior_citizen', '') in ('1', 'true', 'on')
    totals = _service().preview_totals(ids, is_senior, request.args.get('payment_method', 'cash'))
    return jsonify(totals.as_dict())


# ---- Manual transaction ----
@bp.route('/create', methods=('GET', 'POST'))
@login_required
def create():
    errors = {}
    status_code = 200
    items = [{}]

    if request.method == 'POST':
        items = _form_items()
        try:
            tx = _service().create_manual(request.form.to_dict(), items, g.user['id'])
        except ValidationError as e:
            errors = e.errors
            status_code = 422
            flash(e.first_message, 'error')
        else:
            log_activity(
                ActionType.TRANSACTION_CREATE, ActionCategory.TRANSACTION,
                description=f"Created manual transaction {tx['transaction_id']}",
                target_type='transaction', target_id=tx['id'], target_name=tx['transaction_id'],
                amount=tx['amount'],
            )
            flash(f"Transaction {tx['transaction_id']} created successfully.", 'success')
            return redirect(url_for('billing.show', transaction_id=tx['id']))

    return render_template(
        'billing/create.html', form=request.form, items=items or [{}], errors=errors, **_form_lookups()
    ), status_code


# ---- Single transaction ----
@bp.route('/<int:transaction_id>')
@login_required
def show(transaction_id):
    tx = _service().get_transaction(transaction_id)
    if tx is None:
        abort(404)
    return render_template('billing/show.html', tx=tx, statuses=choices('transaction_status'))


@bp.route('/<int:transaction_id>/receipt')
@login_required
def receipt(transaction_id):
    tx = _service().get_transaction(transaction_id)
    if tx is None:
        abort(404)
    return render_template('billing/receipt.html', tx=tx, printed_at=clinic_now())


@bp.route('/<int:transaction_id>/edit', methods=('GET', 'POST'))
@login_required
def edit(transaction_id):
    service = _service()
    tx = service.get_transaction(transaction_id)
    if tx is None:
        abort(404)
    if not tx['can_be_edited']:
        flash(f"Transaction {tx['transaction_id']} can no longer be edited.", 'error')
        return redirect(url_for('billing.show', transaction_id=transaction_id))

    if request.method == 'POST':
        return update(transaction_id=transaction_id)
    return render_template('billing/edit.html', tx=tx, form=tx, errors={}, **_form_lookups())


@bp.route('/<int:transaction_id>', methods=('PUT',))
@login_required
def update(transaction_id):
    service = _service()
    try:
        tx = service.update_transaction(transaction_id, request.form.to_dict(), g.user['id'])
    except LookupError:
        abort(404)
    except BillingError as e:
        flash(str(e), 'error')
        return redirect(url_for('billing.show', transaction_id=transaction_id))
    except ValidationError as e:
        flash(e.first_message, 'error')
        current = service.get_transaction(transaction_id)
        return render_template('billing/edit.html', tx=current, form=request.form, errors=e.errors,
                               **_form_lookups()), 422

    log_activity(
        ActionType.TRANSACTION_UPDATE, ActionCategory.TRANSACTION,
        target_type='transaction', target_id=tx['id'], target_name=tx['transaction_id'], amount=tx['amount'],
    )
    flash(f"Transaction {tx['transaction_id']} updated successfully.", 'success')
    return redirect(url_for('billing.show', transaction_id=transaction_id))


@bp.route('/<int:transaction_id>/status', methods=('POST', 'PUT'))
@login_required
def update_status(transaction_id):
    status = request.form.get('status', '').strip()
    try:
        old_status, tx = _service().update_status(transaction_id, status, g.user['id'])
    except LookupError:
        abort(404)
    except (BillingError, ValidationError) as e:
        flash(e.first_message if isinstance(e, ValidationError) else str(e), 'error')
        return redirect(request.referrer or url_for('billing.show', transaction_id=transaction_id))

    log_activity(
        ActionType.TRANSACTION_STATUS, ActionCategory.TRANSACTION,
        target_type='transaction', target_id=tx['id'], target_name=tx['transaction_id'],
        amount=tx['amount'], old_value=old_status, new_value=status,
    )
    flash(f"Transaction {tx['transaction_id']} status updated to {status}.", 'success')
    return redirect(request.referrer or url_for('billing.show', transaction_id=transaction_id))


@bp.route('/<int:transaction_id>/mark-paid', methods=('POST', 'PUT'))
@login_required
def mark_paid(transaction_id):
    try:
        tx = _service().mark_as_paid(transaction_id, g.user['id'])
    except LookupError:
        abort(404)
    except BillingError as e:
        flash(str(e), 'error')
        return redirect(request.referrer or url_for('billing.show', transaction_id=transaction_id))

    log_activity(
        ActionType.TRANSACTION_PAID, ActionCategory.TRANSACTION,
        target_type='transaction', target_id=tx['id'], target_name=tx['transaction_id'], amount=tx['amount'],
        old_value='pending', new_value='paid',
    )
    flash(f"Transaction {tx['transaction_id']} marked as paid.", 'success')
    return redirect(request.referrer or url_for('billing.show', transaction_id=transaction_id))


@bp.route('/<int:transaction_id>', methods=('DELETE',))
@bp.route('/<int:transaction_id>/delete', methods=('POST',))
@admin_required
def destroy(transaction_id):
    try:
        tx = _service().delete_transaction(transaction_id)
    except LookupError:
        abort(404)
    except BillingError as e:
        flash(str(e), 'error')
        return redirect(url_for('billing.show', transaction_id=transaction_id))

    log_activity(
        ActionType.TRANSACTION_DELETE, ActionCategory.TRANSACTION,
        target_type='transaction', target_id=tx.id, target_name=tx.transaction_id, amount=tx.amount,
        old_value=tx.status,
    )
    flash(f"Transaction {tx.transaction_id} deleted.", 'success')
    return redirect(url_for('billing.index'))
