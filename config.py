import os


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(os.getcwd(), "instance", "chefos.db"),
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Retry de commit quando o SQLite está bloqueado por outro escritor
    DB_COMMIT_RETRIES = int(os.environ.get("DB_COMMIT_RETRIES", "5"))
    DB_COMMIT_BACKOFF = float(os.environ.get("DB_COMMIT_BACKOFF", "0.1"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    # --- Segurança / Autenticação ---
    # Bearer token obrigatório em todas as rotas não isentas
    REQUIRE_AUTH = _env_flag("REQUIRE_AUTH", "true")
    # Segredo compartilhado com o agendador (cron) para rotas /cron/*
    CRON_SECRET = os.environ.get("CRON_SECRET", "")
    API_TOKEN_TTL_DAYS = int(os.environ.get("API_TOKEN_TTL_DAYS", "30"))
    MAX_FAILED_LOGINS = 5
    LOCKOUT_MINUTES = 15
    # --- E-mail transacional ---
    MAIL_API_URL = os.environ.get("MAIL_API_URL", "https://api.resend.com/emails")
    MAIL_API_KEY = os.environ.get("MAIL_API_KEY", "")
    MAIL_FROM = os.environ.get("MAIL_FROM", "ChefOS <noreply@chefos.app>")
    MAIL_TIMEOUT = float(os.environ.get("MAIL_TIMEOUT", "10"))
    ADMIN_ALERT_EMAIL = os.environ.get("ADMIN_ALERT_EMAIL", "")
    # --- Referral fraud scan ---
    FRAUD_WINDOW_THRESHOLD = int(os.environ.get("FRAUD_WINDOW_THRESHOLD", "5"))
    FRAUD_DOMAIN_THRESHOLD = int(os.environ.get("FRAUD_DOMAIN_THRESHOLD", "3"))
    FRAUD_PREFIX_THRESHOLD = int(os.environ.get("FRAUD_PREFIX_THRESHOLD", "3"))
    # Janela de referrals analisada pelo scan
    FRAUD_LOOKBACK_DAYS = int(os.environ.get("FRAUD_LOOKBACK_DAYS", "30"))
    # --- Prep suggestions ---
    PREP_LOOKBACK_DAYS = int(os.environ.get("PREP_LOOKBACK_DAYS", "56"))
    PREP_MIN_OCCURRENCES = int(os.environ.get("PREP_MIN_OCCURRENCES", "3"))
    PREP_MAX_SUGGESTIONS = int(os.environ.get("PREP_MAX_SUGGESTIONS", "10"))
    # --- Vendors / P&L ---
    VENDOR_USAGE_FEE_RATE = float(os.environ.get("VENDOR_USAGE_FEE_RATE", "0.02"))
    VENDOR_GST_RATE = float(os.environ.get("VENDOR_GST_RATE", "0.10"))
    VENDOR_INVOICE_DUE_DAYS = 14
    DEAL_CODE_TTL_HOURS = 24
    PNL_AVG_HOURLY_RATE = float(os.environ.get("PNL_AVG_HOURLY_RATE", "30"))
    PNL_SUPER_RATE = float(os.environ.get("PNL_SUPER_RATE", "0.115"))
    # --- Migrations ---
    AUTO_ALEMBIC_UPGRADE = False  # não executar upgrade automático ao iniciar
