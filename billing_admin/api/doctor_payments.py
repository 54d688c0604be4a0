from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for

from billing_admin.api.auth import admin_required, login_required
from billing_admin.adapters.sqlite.lookups_repo import SpecialistRepository
from billing_admin.common.badges import choices
from billing_admin.common.utils import clinic_today
from billing_admin.common.validators import BillingError, ValidationError
from billing_admin.domain.doctor_payments import PAYMENT_METHODS
from billing_admin.services.activity_logger import log_activity, ActionType, ActionCategory
from billing_admin.services.doctor_payment_service import DoctorPaymentService

bp = Blueprint('doctor_payments', __name__, url_prefix='/admin/billing/doctor-payments')


def _form_context(form, errors, payment=None, simple=False):
    return {
        'form': form,
        'errors': errors,
        'payment': payment,
        'simple': simple,
        'doctors': SpecialistRepository().get_active(),
        'statuses': choices('doctor_payment_status'),
        'payment_methods': [c for c in choices('payment_method') if c[0] in PAYMENT_METHODS],
        'today': clinic_today().isoformat(),
    }


def _log(action_type, payment, **extra):
    log_activity(
        action_type, ActionCategory.DOCTOR_PAYMENT,
        target_type='doctor_payment', target_id=payment['id'],
        target_name=f"DP-{payment['id']} {payment.get('doctor_name') or ''}".strip(),
        amount=payment.get('net_payment') or 0,
        **extra,
    )


@bp.route('/')
@login_required
def index():
    filters = {
        'search': request.args.get('search', '').strip(),
        'status': request.args.get('status', '').strip(),
        'doctor_id': request.args.get('doctor_id', type=int),
        'date_from': request.args.get('date_from', '').strip(),
        'date_to': request.args.get('date_to', '').strip(),
        'sort': request.args.get('sort', '').strip(),
        'page': request.args.get('page', 1, type=int),
    }
    result = DoctorPaymentService().list_payments(filters, current_app.config.get('PAGE_SIZE', 15))
    return render_template(
        'doctor_payments/index.html',
        page=result['page'],
        summary=result['summary'],
        filters=filters,
        doctors=SpecialistRepository().get_active(),
        statuses=choices('doctor_payment_status'),
    )


def _create(simple):
    if request.method == 'POST':
        service = DoctorPaymentService()
        try:
            payment = service.create_payment(request.form.to_dict(), g.user['id'], simple=simple)
        except ValidationError as e:
            flash(e.first_message, 'error')
            return render_template('doctor_payments/form.html',
                                   **_form_context(request.form, e.errors, simple=simple)), 422

        _log(ActionType.DOCTOR_PAYMENT_CREATE, payment, new_value=payment['status'])
        flash('Doctor payment recorded successfully.', 'success')
        return redirect(url_for('doctor_payments.index'))

    return render_template('doctor_payments/form.html', **_form_context({}, {}, simple=simple))


@bp.route('/create', methods=('GET', 'POST'))
@login_required
def create():
    return _create(simple=False)


@bp.route('/simple', methods=('GET', 'POST'))
@login_required
def create_simple():
    """Quick entry: incentives only, no salary or deductions."""
    return _create(simple=True)


@bp.route('/<int:payment_id>')
@login_required
def show(payment_id):
    payment = DoctorPaymentService().get_payment(payment_id)
    if payment is None:
        abort(404)
    return render_template('doctor_payments/show.html', payment=payment,
                           statuses=choices('doctor_payment_status'))


@bp.route('/<int:payment_id>/edit', methods=('GET', 'POST'))
@login_required
def edit(payment_id):
    payment = DoctorPaymentService().get_payment(payment_id)
    if payment is None:
        abort(404)
    if request.method == 'POST':
        return update(payment_id=payment_id)
    if payment['status'] != 'pending':
        flash('Only pending doctor payments can be edited.', 'error')
        return redirect(url_for('doctor_payments.show', payment_id=payment_id))
    return render_template('doctor_payments/form.html', **_form_context(payment, {}, payment=payment))


@bp.route('/<int:payment_id>', methods=('PUT',))
@login_required
def update(payment_id):
    service = DoctorPaymentService()
    try:
        payment = service.update_payment(payment_id, request.form.to_dict())
    except LookupError:
        abort(404)
    except BillingError as e:
        flash(str(e), 'error')
        return redirect(url_for('doctor_payments.show', payment_id=payment_id))
    except ValidationError as e:
        flash(e.first_message, 'error')
        current = service.get_payment(payment_id)
        return render_template('doctor_payments/form.html',
                               **_form_context(request.form, e.errors, payment=current)), 422

    _log(ActionType.DOCTOR_PAYMENT_UPDATE, payment)
    flash('Doctor payment updated successfully.', 'success')
    return redirect(url_for('doctor_payments.show', payment_id=payment_id))


@bp.route('/<int:payment_id>/status', methods=('POST', 'PUT'))
@login_required
def update_status(payment_id):
    status = request.form.get('status', '').strip()
    try:
        old_status, payment = DoctorPaymentService().update_status(payment_id, status)
    except LookupError:
        abort(404)
    except ValidationError as e:
        flash(e.first_message, 'error')
        return redirect(request.referrer or url_for('doctor_payments.show', payment_id=payment_id))

    _log(ActionType.DOCTOR_PAYMENT_STATUS, payment, old_value=old_status, new_value=status)
    flash(f'Doctor payment status updated to {status}.', 'success')
    return redirect(request.referrer or url_for('doctor_payments.show', payment_id=payment_id))


@bp.route('/<int:payment_id>/mark-paid', methods=('POST', 'PUT'))
@login_required
def mark_paid(payment_id):
    try:
        payment = DoctorPaymentService().mark_as_paid(payment_id)
    except LookupError:
        abort(404)
    except BillingError as e:
        flash(str(e), 'error')
        return redirect(request.referrer or url_for('doctor_payments.show', payment_id=payment_id))

    _log(ActionType.DOCTOR_PAYMENT_STATUS, payment, old_value='pending', new_value='paid')
    flash('Doctor payment marked as paid.', 'success')
    return redirect(request.referrer or url_for('doctor_payments.show', payment_id=payment_id))


@bp.route('/<int:payment_id>', methods=('DELETE',))
@bp.route('/<int:payment_id>/delete', methods=('POST',))
@admin_required
def destroy(payment_id):
    try:
        payment = DoctorPaymentService().delete_payment(payment_id)
    except LookupError:
        abort(404)

    _log(ActionType.DOCTOR_PAYMENT_DELETE, payment, old_value=payment['status'])
    flash('Doctor payment deleted.', 'success')
    return redirect(url_for('doctor_payments.index'))
