import hashlib
import secrets
from datetime import datetime, timedelta

from werkzeug.security import check_password_hash, generate_password_hash

from .. import db

ROLES = ("owner", "head_chef", "sous_chef", "staff", "admin")


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class Member(db.Model):
    __tablename__ = "members"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    username = db.Column(db.String(64), unique=True, index=True, nullable=False)
    full_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(254))
    password_hash = db.Column(db.String(256))
    # Cargos: owner, head_chef, sous_chef, staff, admin (plataforma)
    role = db.Column(db.String(20), default="staff", nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    # Segurança adicional
    failed_login_count = db.Column(db.Integer, default=0)
    locked_until = db.Column(db.DateTime)
    api_token_hash = db.Column(db.String(64), unique=True, index=True)
    api_token_expires_at = db.Column(db.DateTime)

    def set_password(self, password: str) -> None:
        if len(password or "") < 8:
            raise ValueError("password must have at least 8 characters")
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def issue_token(self, ttl_days: int) -> str:
        """Generate a new bearer token; only its digest is stored."""
        token = secrets.token_urlsafe(32)
        self.api_token_hash = hash_token(token)
        self.api_token_expires_at = datetime.utcnow() + timedelta(days=ttl_days)
        return token

    def token_valid(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        return bool(self.api_token_expires_at and self.api_token_expires_at > now)

    # --- Controle de tentativas de login ---
    def register_failed_login(self, max_attempts: int, lock_minutes: int) -> None:
        self.failed_login_count = (self.failed_login_count or 0) + 1
        if self.failed_login_count >= max_attempts:
            self.locked_until = datetime.utcnow() + timedelta(minutes=lock_minutes)
            self.failed_login_count = 0  # reinicia após bloqueio

    def reset_failed_login(self) -> None:
        self.failed_login_count = 0
        self.locked_until = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
        }
