from flask import Blueprint, current_app
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from rapport import db
from rapport.auth.forms import EmailForm, LoginForm, PasswordForm, RegistrationForm
from rapport.models import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _form_errors(form):
    return {"ok": False, "error": "Invalid input.", "fields": form.errors}, 400


@auth_bp.route("/csrf")
def csrf_token():
    return {"ok": True, "csrf_token": generate_csrf()}


@auth_bp.route("/register", methods=["POST"])
def register():
    form = RegistrationForm()
    if not form.validate_on_submit():
        return _form_errors(form)
    user = User(
        first_name=form.first_name.data,
        last_name=form.last_name.data,
        email=form.email.data,
    )
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("Registered user %s", user.id)
    return {"ok": True, "user": user.to_public_dict()}, 201


@auth_bp.route("/login", methods=["POST"])
def login():
    if current_user.is_authenticated:
        return {"ok": True, "user": current_user.to_public_dict()}

    form = LoginForm()
    if not form.validate_on_submit():
        return _form_errors(form)
    user = User.query.filter_by(email=form.email.data).first()
    if not user or not user.check_password(form.password.data):
        return {"ok": False, "error": "Invalid email or password"}, 401

    login_user(user)
    return {"ok": True, "user": user.to_public_dict()}


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return {"ok": True}


@auth_bp.route("/me")
@login_required
def me():
    payload = current_user.to_public_dict()
    payload["email"] = current_user.email
    return {"ok": True, "user": payload}


@auth_bp.route("/password", methods=["POST"])
@login_required
def change_password():
    form = PasswordForm()
    if not form.validate_on_submit():
        return _form_errors(form)
    if not current_user.check_password(form.old_password.data):
        return {"ok": False, "error": "Old password does not match."}, 400
    current_user.set_password(form.new_password.data)
    db.session.commit()
    return {"ok": True}


@auth_bp.route("/email", methods=["POST"])
@login_required
def change_email():
    form = EmailForm(original_email=current_user.email)
    if not form.validate_on_submit():
        return _form_errors(form)
    current_user.email = form.email.data
    db.session.commit()
    return {"ok": True, "email": current_user.email}
