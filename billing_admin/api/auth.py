import functools
from flask import (
    Blueprint, abort, current_app, flash, g, redirect, render_template, request, session, url_for
)

from billing_admin.services.auth_service import AuthService
from billing_admin.services.activity_logger import log_activity, ActionType, ActionCategory


bp = Blueprint("auth", __name__, url_prefix="/auth")


@bp.route("/login", methods=("GET", "POST"))
def login():
    if request.method == "POST":
        service = AuthService(
            max_attempts=current_app.config.get("LOGIN_MAX_ATTEMPTS", 5),
            lock_minutes=current_app.config.get("LOGIN_LOCK_MINUTES", 15),
        )
        username = request.form.get("username", "")
        password = request.form.get("password", "")
        user = service.authenticate(username, password)

        if user is None:
            flash("Invalid username or password, or the account is temporarily locked.", "error")
            return render_template("auth/login.html", username=username), 401

        session.clear()
        session["user_id"] = user["id"]
        session["role"] = user["role"]

        log_activity(
            action_type=ActionType.LOGIN,
            action_category=ActionCategory.AUTH,
            description=f'Signed in as {user["role"]} - {user["username"]}',
            user_id=user["id"],
            username=user["username"]
        )

        next_url = request.args.get("next")
        if next_url and next_url.startswith("/") and not next_url.startswith("//"):
            return redirect(next_url)
        return redirect(url_for("billing.index"))

    return render_template("auth/login.html")


@bp.route("/logout")
def logout():
    if g.user:
        log_activity(
            action_type=ActionType.LOGOUT,
            action_category=ActionCategory.AUTH,
            description=f'Signed out - {g.user["username"]}',
            user_id=g.user["id"],
            username=g.user["username"]
        )

    session.clear()
    return redirect(url_for("auth.login"))


def login_required(view):
    @functools.wraps(view)
    def wrapped_view(**kwargs):
        if g.user is None:
            return redirect(url_for("auth.login", next=request.full_path.rstrip("?")))

        if g.user["role"] not in ("admin", "cashier"):
            abort(403)

        return view(**kwargs)

    return wrapped_view


def admin_required(view):
    """Deletes and the audit log are admin-only."""
    @functools.wraps(view)
    def wrapped_view(**kwargs):
        if g.user is None:
            return redirect(url_for("auth.login", next=request.full_path.rstrip("?")))

        if g.user["role"] != "admin":
            abort(403)

        return view(**kwargs)

    return wrapped_view
