import math

from flask import Blueprint, current_app, render_template, request

from billing_admin.api.auth import admin_required
from billing_admin.services.activity_logger import ActionCategory, get_activity_logs, get_logs_count
from billing_admin.services.listing import Page

bp = Blueprint("admin", __name__, url_prefix="/admin")

CATEGORIES = [
    (ActionCategory.AUTH, "Sign-in"),
    (ActionCategory.TRANSACTION, "Transactions"),
    (ActionCategory.DOCTOR_PAYMENT, "Doctor Payments"),
    (ActionCategory.EXPENSE, "Expenses"),
    (ActionCategory.HMO_PROVIDER, "HMO Providers"),
    (ActionCategory.REPORT, "Reports"),
]


@bp.route("/activity-logs")
@admin_required
def activity_logs():
    filters = {
        "action_category": request.args.get("category", "").strip() or None,
        "date_from": request.args.get("date_from", "").strip() or None,
        "date_to": request.args.get("date_to", "").strip() or None,
        "search_text": request.args.get("search", "").strip() or None,
    }
    page_size = current_app.config.get("PAGE_SIZE", 15)
    total = get_logs_count(**filters)
    page_count = max(math.ceil(total / page_size), 1)
    page_number = min(max(request.args.get("page", 1, type=int), 1), page_count)

    logs = get_activity_logs(**filters, limit=page_size, offset=(page_number - 1) * page_size)
    return render_template(
        "admin/activity_logs.html",
        page=Page(items=logs, page=page_number, page_size=page_size, total=total),
        categories=CATEGORIES,
        filters=request.args,
    )
