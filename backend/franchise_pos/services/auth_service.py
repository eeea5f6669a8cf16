# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Passwords are hashed with bcrypt and must meet strength requirements.
Non-owner users must belong to an outlet.
"""

import bcrypt
import re
from ..extensions import db
from ..models import User, Outlet
from ..models.auth import ROLES, ROLE_OWNER
from franchise_pos.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit

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


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash password using bcrypt (cost factor 12 by default).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash (timing-safe via bcrypt.checkpw)."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def create_user(
    *,
    name: str,
    username: str,
    email: str,
    password: str,
    role: str,
    outlet_id: int | None = None,
    rounds: int = 12,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: Unknown role, duplicate username/email, missing or unknown outlet
        PasswordValidationError: If password doesn't meet requirements
    """
    if role not in ROLES:
        raise ValueError(f"role must be one of: {', '.join(ROLES)}")

    if role != ROLE_OWNER and outlet_id is None:
        raise ValueError("Non-owner users must belong to an outlet")

    if outlet_id is not None and db.session.get(Outlet, outlet_id) is None:
        raise ValueError("Outlet not found")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValueError("Username or email already exists")

    user = User(
        name=name,
        username=username,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        outlet_id=outlet_id,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
