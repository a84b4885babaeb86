import hmac
import logging
from datetime import datetime
from functools import wraps

from flask import Blueprint, abort, current_app, g, jsonify, request

from .. import db
from ..utils_api import json_body
from .models import Member, hash_token

auth_bp = Blueprint("auth", __name__)

logger = logging.getLogger("chefos.auth")

# Grupos compostos de cargos
ROLE_GROUPS = {
    "kitchen_leads": {"owner", "head_chef", "sous_chef", "admin"},
    "management": {"owner", "admin"},
}

_EXEMPT_PREFIXES = ("/auth/", "/health")


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer ") :].strip()
    return token or None


def _is_cron_path(path: str) -> bool:
    return "/cron/" in path


@auth_bp.before_app_request
def load_member():
    """Resolve g.member from the bearer token (None when absent/invalid)."""
    g.member = None
    token = _bearer_token()
    if not token:
        return
    member = Member.query.filter_by(api_token_hash=hash_token(token)).first()
    if member is None or not member.is_active or not member.token_valid():
        return
    g.member = member


@auth_bp.before_app_request
def enforce_auth_globally():
    """With REQUIRE_AUTH on, every non-exempt path needs a member.

    Exemptions: auth routes, health, and cron routes (guarded by
    cron_required instead of a member token).
    """
    if not current_app.config.get("REQUIRE_AUTH", True):
        return
    path = request.path or "/"
    if path.startswith(_EXEMPT_PREFIXES) or _is_cron_path(path):
        return
    if getattr(g, "member", None) is None:
        abort(401, description="Missing or invalid bearer token")


def require_roles(*roles):
    """Decorator exigindo um dos cargos (ou grupos em ROLE_GROUPS).

    Sem argumentos => apenas exige membro autenticado. Quando REQUIRE_AUTH
    está desligado (dev/testes) e não há membro, a chamada segue.
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            member = getattr(g, "member", None)
            if member is None:
                if current_app.config.get("REQUIRE_AUTH", True):
                    abort(401, description="Authentication required")
                return fn(*args, **kwargs)
            if roles:
                allowed: set[str] = set()
                for r in roles:
                    allowed.update(ROLE_GROUPS.get(r, {r}))
                if member.role not in allowed:
                    abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def cron_required(fn):
    """Guard for scheduler-invoked endpoints (X-Cron-Secret header)."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        secret = current_app.config.get("CRON_SECRET") or ""
        supplied = request.headers.get("X-Cron-Secret", "")
        if not secret:
            if current_app.config.get("REQUIRE_AUTH", True):
                logger.warning("Cron call to %s rejected: CRON_SECRET not configured", request.path)
                abort(401, description="Cron secret not configured")
        elif not hmac.compare_digest(secret, supplied):
            abort(401, description="Invalid cron secret")
        return fn(*args, **kwargs)

    return wrapper


@auth_bp.route("/token", methods=["POST"])
def issue_token():
    data = json_body()
    username = str(data.get("username") or "").strip()
    password = str(data.get("password") or "")
    if not username or not password:
        abort(400, description="username and password are required")
    member = Member.query.filter_by(username=username).first()
    if member is None:
        abort(401, description="Invalid credentials")
    # Verifica bloqueio
    if member.locked_until and member.locked_until > datetime.utcnow():
        remaining = int((member.locked_until - datetime.utcnow()).total_seconds() / 60) + 1
        abort(401, description=f"Account locked. Try again in ~{remaining} min.")
    if not member.check_password(password):
        member.register_failed_login(
            current_app.config.get("MAX_FAILED_LOGINS", 5),
            current_app.config.get("LOCKOUT_MINUTES", 15),
        )
        db.session.commit()
        abort(401, description="Invalid credentials")
    if not member.is_active:
        abort(403, description="Member is inactive")
    member.reset_failed_login()
    token = member.issue_token(current_app.config.get("API_TOKEN_TTL_DAYS", 30))
    db.session.commit()
    logger.info("Issued API token for member %s (org %s)", member.id, member.org_id)
    return jsonify(
        {
            "status": "success",
            "token": token,
            "expires_at": member.api_token_expires_at.isoformat(),
            "member": member.to_dict(),
        }
    )


@auth_bp.route("/token", methods=["DELETE"])
def revoke_token():
    member = getattr(g, "member", None)
    if member is None:
        abort(401, description="Authentication required")
    member.api_token_hash = None
    member.api_token_expires_at = None
    db.session.commit()
    return jsonify({"status": "success"})


@auth_bp.route("/me")
def me():
    member = getattr(g, "member", None)
    if member is None:
        abort(401, description="Authentication required")
    return jsonify(member.to_dict())
