from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, url_for

from billing_admin.api.auth import admin_required, login_required
from billing_admin.common.badges import choices
from billing_admin.common.validators import BillingError, ValidationError
from billing_admin.services.activity_logger import log_activity, ActionType, ActionCategory
from billing_admin.services.hmo_provider_service import HmoProviderService

bp = Blueprint('hmo_providers', __name__, url_prefix='/admin/billing/hmo-providers')


def _log(action_type, provider, **extra):
    log_activity(
        action_type, ActionCategory.HMO_PROVIDER,
        target_type='hmo_provider', target_id=provider['id'], target_name=provider['name'],
        **extra,
    )


def _status(provider):
    return 'active' if provider['is_active'] else 'inactive'


@bp.route('/')
@login_required
def index():
    filters = {
        'search': request.args.get('search', '').strip(),
        'status': request.args.get('status', '').strip(),
        'page': request.args.get('page', 1, type=int),
    }
    result = HmoProviderService().list_providers(filters, current_app.config.get('PAGE_SIZE', 15))
    return render_template(
        'hmo_providers/index.html',
        page=result['page'],
        summary=result['summary'],
        filters=filters,
        statuses=choices('provider_status'),
    )


@bp.route('/create', methods=('GET', 'POST'))
@login_required
def create():
    if request.method == 'POST':
        try:
            provider = HmoProviderService().create_provider(request.form.to_dict())
        except ValidationError as e:
            flash(e.first_message, 'error')
            return render_template('hmo_providers/form.html', form=request.form, errors=e.errors, provider=None), 422

        _log(ActionType.HMO_PROVIDER_CREATE, provider, new_value=_status(provider))
        flash(f"HMO provider {provider['name']} created successfully.", 'success')
        return redirect(url_for('hmo_providers.index'))

    return render_template('hmo_providers/form.html', form={'is_active': 1}, errors={}, provider=None)


@bp.route('/<int:provider_id>')
@login_required
def show(provider_id):
    provider = HmoProviderService().get_provider(provider_id)
    if provider is None:
        abort(404)
    return render_template('hmo_providers/show.html', provider=provider)


@bp.route('/<int:provider_id>/edit', methods=('GET', 'POST'))
@login_required
def edit(provider_id):
    provider = HmoProviderService().get_provider(provider_id)
    if provider is None:
        abort(404)
    if request.method == 'POST':
        return update(provider_id=provider_id)
    return render_template('hmo_providers/form.html', form=provider, errors={}, provider=provider)


@bp.route('/<int:provider_id>', methods=('PUT',))
@login_required
def update(provider_id):
    service = HmoProviderService()
    try:
        provider = service.update_provider(provider_id, request.form.to_dict())
    except LookupError:
        abort(404)
    except ValidationError as e:
        flash(e.first_message, 'error')
        return render_template('hmo_providers/form.html', form=request.form, errors=e.errors,
                               provider=service.get_provider(provider_id)), 422

    _log(ActionType.HMO_PROVIDER_UPDATE, provider)
    flash(f"HMO provider {provider['name']} updated successfully.", 'success')
    return redirect(url_for('hmo_providers.show', provider_id=provider_id))


@bp.route('/<int:provider_id>/toggle-status', methods=('POST', 'PUT'))
@login_required
def toggle_status(provider_id):
    try:
        provider = HmoProviderService().toggle_status(provider_id)
    except LookupError:
        abort(404)

    new_status = _status(provider)
    _log(ActionType.HMO_PROVIDER_STATUS, provider,
         old_value='inactive' if provider['is_active'] else 'active', new_value=new_status)
    flash(f"HMO provider {provider['name']} is now {new_status}.", 'success')
    return redirect(request.referrer or url_for('hmo_providers.index'))


@bp.route('/<int:provider_id>', methods=('DELETE',))
@bp.route('/<int:provider_id>/delete', methods=('POST',))
@admin_required
def destroy(provider_id):
    try:
        provider = HmoProviderService().delete_provider(provider_id)
    except LookupError:
        abort(404)
    except BillingError as e:
        flash(str(e), 'error')
        return redirect(url_for('hmo_providers.show', provider_id=provider_id))

    _log(ActionType.HMO_PROVIDER_DELETE, provider, old_value=_status(provider))
    flash(f"HMO provider {provider['name']} deleted.", 'success')
    return redirect(url_for('hmo_providers.index'))
