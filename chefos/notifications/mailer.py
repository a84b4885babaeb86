"""Transactional e-mail through an HTTP e-mail API (Resend-style).

`send_email` never raises for delivery problems: it logs and returns False,
so a cron run is not aborted because the mail provider is down.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable

import requests
from flask import current_app
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger("chefos.mailer")

# Sessão HTTP em nível de módulo (criada sob demanda em _session())
__SESSION: requests.Session | None = None


def _session() -> requests.Session:
    global __SESSION
    if isinstance(__SESSION, requests.Session):
        return __SESSION
    s = requests.Session()
    # POST incluído: o Idempotency-Key evita e-mail duplicado no retry
    retry = Retry(
        total=2,
        backoff_factor=0.3,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"POST"}),
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=2, pool_maxsize=4)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    __SESSION = s
    return s


def send_email(to: str | Iterable[str], subject: str, html: str) -> bool:
    cfg = current_app.config
    api_key = cfg.get("MAIL_API_KEY")
    recipients = [to] if isinstance(to, str) else [r for r in to if r]
    if not api_key:
        logger.info("Mail not configured; skipping '%s' to %s", subject, recipients)
        return False
    if not recipients:
        logger.warning("Mail '%s' has no recipients", subject)
        return False
    payload = {
        "from": cfg.get("MAIL_FROM"),
        "to": recipients,
        "subject": subject,
        "html": html,
    }
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Idempotency-Key": uuid.uuid4().hex,
    }
    try:
        resp = _session().post(
            cfg.get("MAIL_API_URL"),
            json=payload,
            headers=headers,
            timeout=cfg.get("MAIL_TIMEOUT", 10),
        )
        resp.raise_for_status()
    except requests.exceptions.RequestException as exc:
        logger.error("Mail '%s' to %s failed: %s", subject, recipients, exc)
        return False
    logger.info("Mail '%s' sent to %s", subject, recipients)
    return True


def send_admin_alert(subject: str, html: str) -> bool:
    admin = current_app.config.get("ADMIN_ALERT_EMAIL")
    if not admin:
        logger.info("ADMIN_ALERT_EMAIL not set; alert '%s' not sent", subject)
        return False
    return send_email(admin, subject, html)
