"""Report pages and their exports, mounted under /admin/billing."""
from flask import Blueprint, flash, redirect, render_template, request, url_for

from billing_admin.api.auth import login_required
from billing_admin.adapters.sqlite.lookups_repo import HmoProviderRepository, SpecialistRepository
from billing_admin.common.validators import ValidationError
from billing_admin.services.activity_logger import log_activity, ActionType, ActionCategory
from billing_admin.services.export_service import build_export_response
from billing_admin.services.report_service import (
    DOCTOR_SUMMARY_HEADERS, EXPORT_HEADERS, HMO_HEADERS, ReportService,
)

bp = Blueprint('reports', __name__, url_prefix='/admin/billing')

PERIODS = ('daily', 'monthly', 'yearly')
PERIOD_PARAMS = {'daily': 'date', 'monthly': 'month', 'yearly': 'year'}
PERIOD_TITLES = {'daily': 'Daily Report', 'monthly': 'Monthly Report', 'yearly': 'Yearly Report'}


def _log_view(name):
    log_activity(ActionType.REPORT_VIEW, ActionCategory.REPORT, description=f'Viewed {name}', target_type='report',
                 target_name=name)


def _export(fmt, stem, title, headers, rows, summary, fallback):
    try:
        response = build_export_response(fmt, stem, title, headers, rows, summary)
    except ValidationError as e:
        flash(e.first_message, 'error')
        return redirect(fallback)
    log_activity(ActionType.REPORT_EXPORT, ActionCategory.REPORT, description=f'Exported {title} ({fmt})',
                 target_type='report', target_name=stem)
    return response


def _invalid(e, endpoint, **values):
    flash(e.first_message, 'error')
    return redirect(url_for(endpoint, **values))


# ---- Daily / monthly / yearly ----
@bp.route('/daily-report')
@login_required
def daily_report():
    try:
        report = ReportService().daily_report(request.args.get('date') or None)
    except ValidationError as e:
        return _invalid(e, 'reports.daily_report')
    _log_view(f"daily report {report['date']}")
    return render_template('reports/daily.html', report=report)


@bp.route('/monthly-report')
@login_required
def monthly_report():
    try:
        report = ReportService().monthly_report(request.args.get('month') or None)
    except ValidationError as e:
        return _invalid(e, 'reports.monthly_report')
    _log_view(f"monthly report {report['month']}")
    return render_template('reports/monthly.html', report=report)


@bp.route('/yearly-report')
@login_required
def yearly_report():
    try:
        report = ReportService().yearly_report(request.args.get('year') or None)
    except ValidationError as e:
        return _invalid(e, 'reports.yearly_report')
    _log_view(f"yearly report {report['year']}")
    return render_template('reports/yearly.html', report=report)


# ---- Billing reports index and exports ----
@bp.route('/billing-reports/')
@login_required
def billing_reports():
    try:
        report = ReportService().billing_reports_index(
            request.args.get('date_from') or None, request.args.get('date_to') or None,
        )
    except ValidationError as e:
        return _invalid(e, 'reports.billing_reports')
    return render_template('reports/index.html', report=report)


@bp.route('/billing-reports/<period>/export')
@login_required
def export_period(period):
    if period not in PERIODS:
        return _invalid(ValidationError({'period': f'Unknown report period: {period}'}), 'reports.billing_reports')

    service = ReportService()
    try:
        stem, report = service.period_entries(period, request.args.get(PERIOD_PARAMS[period]) or None)
    except ValidationError as e:
        return _invalid(e, 'reports.billing_reports')

    return _export(
        request.args.get('format', 'excel'), stem, PERIOD_TITLES[period], EXPORT_HEADERS,
        service.export_rows(report['transactions']), report['summary'], url_for('reports.billing_reports'),
    )


@bp.route('/billing-reports/export-all')
@login_required
def export_all():
    service = ReportService()
    try:
        report = service.billing_reports_index(
            request.args.get('date_from') or None, request.args.get('date_to') or None,
        )
    except ValidationError as e:
        return _invalid(e, 'reports.billing_reports')

    stem = f"billing-report-{report['date_from']}-to-{report['date_to']}"
    return _export(
        request.args.get('format', 'excel'), stem, 'Billing Report', EXPORT_HEADERS,
        service.export_rows(report['transactions']), report['summary'], url_for('reports.billing_reports'),
    )


# ---- HMO ----
def _hmo_report():
    return ReportService().hmo_report(
        request.args.get('date_from') or None,
        request.args.get('date_to') or None,
        request.args.get('provider', '').strip() or None,
    )


@bp.route('/hmo-report')
@login_required
def hmo_report():
    try:
        report = _hmo_report()
    except ValidationError as e:
        return _invalid(e, 'reports.hmo_report')
    _log_view('HMO report')
    return render_template('reports/hmo.html', report=report, provider_names=HmoProviderRepository().get_active_names())


@bp.route('/hmo-report/export')
@login_required
def hmo_export():
    service = ReportService()
    try:
        report = _hmo_report()
    except ValidationError as e:
        return _invalid(e, 'reports.hmo_report')
    stem = f"hmo-report-{report['date_from']}-to-{report['date_to']}"
    return _export(
        request.args.get('format', 'excel'), stem, 'HMO Report', HMO_HEADERS,
        service.hmo_rows(report), report['summary'], url_for('reports.hmo_report'),
    )


# ---- Doctor summary ----
def _doctor_context(report, period=None):
    return {
        'report': report,
        'period': period,
        'period_param': PERIOD_PARAMS.get(period),
        'doctors': SpecialistRepository().get_active(),
    }


@bp.route('/doctor-summary')
@login_required
def doctor_summary():
    try:
        report = ReportService().doctor_summary(
            request.args.get('date_from') or None,
            request.args.get('date_to') or None,
            request.args.get('doctor_id', 'all'),
        )
    except (ValidationError, ValueError) as e:
        flash(getattr(e, 'first_message', 'Invalid doctor filter.'), 'error')
        return redirect(url_for('reports.doctor_summary'))
    _log_view('doctor summary')
    return render_template('reports/doctor_summary.html', **_doctor_context(report))


@bp.route('/doctor-summary/export')
@login_required
def doctor_summary_export():
    service = ReportService()
    try:
        report = service.doctor_summary(
            request.args.get('date_from') or None,
            request.args.get('date_to') or None,
            request.args.get('doctor_id', 'all'),
        )
    except (ValidationError, ValueError) as e:
        flash(getattr(e, 'first_message', 'Invalid doctor filter.'), 'error')
        return redirect(url_for('reports.doctor_summary'))
    stem = f"doctor-summary-{report['date_from']}-to-{report['date_to']}"
    return _export(
        request.args.get('format', 'excel'), stem, 'Doctor Summary', DOCTOR_SUMMARY_HEADERS,
        service.doctor_summary_rows(report), report['summary'], url_for('reports.doctor_summary'),
    )


def _period_summary(period):
    return ReportService().doctor_summary_for_period(
        period, request.args.get(PERIOD_PARAMS[period]) or None, request.args.get('doctor_id', 'all'),
    )


@bp.route('/doctor-summary-report/<period>')
@login_required
def doctor_summary_period(period):
    if period not in PERIODS:
        return _invalid(ValidationError({'period': f'Unknown report period: {period}'}), 'reports.doctor_summary')
    try:
        report = _period_summary(period)
    except (ValidationError, ValueError) as e:
        flash(getattr(e, 'first_message', 'Invalid doctor filter.'), 'error')
        return redirect(url_for('reports.doctor_summary'))
    _log_view(f'{period} doctor summary')
    return render_template('reports/doctor_summary.html', **_doctor_context(report, period))


@bp.route('/doctor-summary-report/<period>/export')
@login_required
def doctor_summary_period_export(period):
    if period not in PERIODS:
        return _invalid(ValidationError({'period': f'Unknown report period: {period}'}), 'reports.doctor_summary')
    service = ReportService()
    try:
        report = _period_summary(period)
    except (ValidationError, ValueError) as e:
        flash(getattr(e, 'first_message', 'Invalid doctor filter.'), 'error')
        return redirect(url_for('reports.doctor_summary'))
    stem = f"doctor-summary-{period}-{report['period_value']}"
    return _export(
        request.args.get('format', 'excel'), stem, f'Doctor Summary ({period.title()})', DOCTOR_SUMMARY_HEADERS,
        service.doctor_summary_rows(report), report['summary'], url_for('reports.doctor_summary'),
    )
