from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for

from billing_admin.api.auth import admin_required, login_required
from billing_admin.common.badges import choices
from billing_admin.common.utils import clinic_today
from billing_admin.common.validators import BillingError, ValidationError
from billing_admin.domain.expenses import PAYMENT_METHODS
from billing_admin.services.activity_logger import log_activity, ActionType, ActionCategory
from billing_admin.services.expense_service import ExpenseService

bp = Blueprint('expenses', __name__, url_prefix='/admin/billing/expenses')


def _form_context(form, errors, expense=None):
    return {
        'form': form,
        'errors': errors,
        'expense': expense,
        'categories': choices('expense_category'),
        'statuses': choices('expense_status'),
        'payment_methods': [c for c in choices('payment_method') if c[0] in PAYMENT_METHODS],
        'today': clinic_today().isoformat(),
    }


def _log(action_type, expense, **extra):
    log_activity(
        action_type, ActionCategory.EXPENSE,
        target_type='expense', target_id=expense['id'], target_name=expense['expense_name'],
        amount=expense.get('amount') or 0,
        **extra,
    )


@bp.route('/')
@login_required
def index():
    filters = {
        'search': request.args.get('search', '').strip(),
        'status': request.args.get('status', '').strip(),
        'category': request.args.get('category', '').strip(),
        'date_from': request.args.get('date_from', '').strip(),
        'date_to': request.args.get('date_to', '').strip(),
        'sort': request.args.get('sort', '').strip(),
        'page': request.args.get('page', 1, type=int),
    }
    result = ExpenseService().list_expenses(filters, current_app.config.get('PAGE_SIZE', 15))
    return render_template(
        'expenses/index.html',
        page=result['page'],
        summary=result['summary'],
        filters=filters,
        categories=choices('expense_category'),
        statuses=choices('expense_status'),
    )


@bp.route('/create', methods=('GET', 'POST'))
@login_required
def create():
    if request.method == 'POST':
        try:
            expense = ExpenseService().create_expense(request.form.to_dict(), g.user['id'])
        except ValidationError as e:
            flash(e.first_message, 'error')
            return render_template('expenses/form.html', **_form_context(request.form, e.errors)), 422

        _log(ActionType.EXPENSE_CREATE, expense, new_value=expense['status'])
        flash('Expense recorded successfully.', 'success')
        return redirect(url_for('expenses.index'))

    return render_template('expenses/form.html', **_form_context({}, {}))


@bp.route('/<int:expense_id>')
@login_required
def show(expense_id):
    expense = ExpenseService().get_expense(expense_id)
    if expense is None:
        abort(404)
    return render_template('expenses/show.html', expense=expense, statuses=choices('expense_status'))


@bp.route('/<int:expense_id>/edit', methods=('GET', 'POST'))
@login_required
def edit(expense_id):
    expense = ExpenseService().get_expense(expense_id)
    if expense is None:
        abort(404)
    if request.method == 'POST':
        return update(expense_id=expense_id)
    if expense['status'] == 'cancelled':
        flash('Cancelled expenses cannot be edited.', 'error')
        return redirect(url_for('expenses.show', expense_id=expense_id))
    return render_template('expenses/form.html', **_form_context(expense, {}, expense=expense))


@bp.route('/<int:expense_id>', methods=('PUT',))
@login_required
def update(expense_id):
    service = ExpenseService()
    try:
        expense = service.update_expense(expense_id, request.form.to_dict(), g.user['id'])
    except LookupError:
        abort(404)
    except BillingError as e:
        flash(str(e), 'error')
        return redirect(url_for('expenses.show', expense_id=expense_id))
    except ValidationError as e:
        flash(e.first_message, 'error')
        current = service.get_expense(expense_id)
        return render_template('expenses/form.html',
                               **_form_context(request.form, e.errors, expense=current)), 422

    _log(ActionType.EXPENSE_UPDATE, expense)
    flash('Expense updated successfully.', 'success')
    return redirect(url_for('expenses.show', expense_id=expense_id))


@bp.route('/<int:expense_id>/status', methods=('POST', 'PUT'))
@login_required
def update_status(expense_id):
    status = request.form.get('status', '').strip()
    try:
        old_status, expense = ExpenseService().update_status(expense_id, status, g.user['id'])
    except LookupError:
        abort(404)
    except ValidationError as e:
        flash(e.first_message, 'error')
        return redirect(request.referrer or url_for('expenses.show', expense_id=expense_id))

    _log(ActionType.EXPENSE_STATUS, expense, old_value=old_status, new_value=status)
    flash(f'Expense status updated to {status}.', 'success')
    return redirect(request.referrer or url_for('expenses.show', expense_id=expense_id))


@bp.route('/<int:expense_id>', methods=('DELETE',))
@bp.route('/<int:expense_id>/delete', methods=('POST',))
@admin_required
def destroy(expense_id):
    try:
        expense = ExpenseService().delete_expense(expense_id)
    except LookupError:
        abort(404)

    _log(ActionType.EXPENSE_DELETE, expense, old_value=expense['status'])
    flash('Expense deleted.', 'success')
    return redirect(url_for('expenses.index'))
