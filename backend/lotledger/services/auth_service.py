# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

WHY: Every sale and every lot must be attributable to a user of exactly
one tenant. Uses bcrypt for password hashing and validates password strength.

MULTI-TENANT: Users belong to exactly one tenant (tenant_id).
Email uniqueness is tenant-scoped; tenant email is globally unique.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import Tenant, User, ROLE_ADMIN
from ..schemas import SignupInput, UserInput
from lotledger.time_utils import utcnow
from .concurrency import atomic
from .tenant_service import require_tenant


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, details={"field": "password"})


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def signup(data: SignupInput) -> tuple[Tenant, User]:
    """
    Create a tenant and its first admin user in one commit.

    Raises ValidationError if the business email is already registered.
    """
    password_hash = hash_password(data.password)

    def _op():
        existing = db.session.query(Tenant).filter_by(email=data.email).first()
        if existing:
            raise ValidationError("Email already registered", details={"field": "email"})

        tenant = Tenant(
            business_name=data.business_name,
            email=data.email,
            lot_prefix=data.lot_prefix or current_app.config.get("DEFAULT_LOT_PREFIX", "LOT-"),
        )
        db.session.add(tenant)
        db.session.flush()

        user = User(
            tenant_id=tenant.id,
            name=data.admin_name,
            email=data.email,
            password_hash=password_hash,
            role=ROLE_ADMIN,
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            raise ValidationError("Email already registered", details={"field": "email"})

        current_app.logger.info("Tenant %s created with admin user %s", tenant.id, user.id)
        return tenant, user

    return atomic(_op, description="Signup")


def create_user(tenant_id: int, data: UserInput) -> User:
    """
    Create a user inside an existing tenant.

    Raises ValidationError if the email already exists in this tenant or
    the password is too weak; TenantAccessError if the tenant is unknown.
    """
    password_hash = hash_password(data.password)

    def _op():
        require_tenant(tenant_id)

        existing = db.session.query(User).filter_by(tenant_id=tenant_id, email=data.email).first()
        if existing:
            raise ValidationError("Email already exists in this tenant", details={"field": "email"})

        user = User(
            tenant_id=tenant_id,
            name=data.name,
            email=data.email,
            password_hash=password_hash,
            role=data.role,
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            raise ValidationError("Email already exists in this tenant", details={"field": "email"})
        return user

    return atomic(_op, description="Create user")


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Email is only unique per tenant, so every active user with that email
    in an active tenant is tried; the first whose password verifies wins.
    Updates last_login_at on success.
    """
    candidates = (
        db.session.query(User)
        .join(Tenant, Tenant.id == User.tenant_id)
        .filter(
            User.email == email.strip().lower(),
            User.is_active.is_(True),
            Tenant.is_active.is_(True),
        )
        .order_by(User.id.asc())
        .all()
    )

    for user in candidates:
        if verify_password(password, user.password_hash):
            user.last_login_at = utcnow()
            db.session.commit()
            return user

    return None
