"""reCAPTCHA token verification."""

from typing import Optional

import requests
import structlog

from chef_bookings.config import ALLOW_UNVERIFIED, RECAPTCHA_SECRET

logger = structlog.get_logger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
RECAPTCHA_TIMEOUT = 10


def verify_captcha(
    token: Optional[str],
    remote_ip: Optional[str] = None,
    secret: Optional[str] = None,
    allow_unverified: Optional[bool] = None,
) -> bool:
    """
    Verify a reCAPTCHA token with Google.

    When no secret is configured the result is the ``allow_unverified`` policy
    (``ALLOW_UNVERIFIED`` by default), and the bypass or rejection is logged.
    Network and decoding failures fail closed.

    Args:
        token: Token posted by the browser widget
        remote_ip: Client address forwarded to the verifier
        secret: Override for RECAPTCHA_SECRET
        allow_unverified: Override for ALLOW_UNVERIFIED

    Returns:
        bool: True if the request may proceed
    """
    secret = RECAPTCHA_SECRET if secret is None else secret
    allow_unverified = ALLOW_UNVERIFIED if allow_unverified is None else allow_unverified

    if not secret:
        logger.warning(
            "captcha_unconfigured",
            policy="allow" if allow_unverified else "reject",
        )
        return allow_unverified

    if not token:
        logger.info("captcha_missing_token", remote_ip=remote_ip)
        return False

    try:
        response = requests.post(
            RECAPTCHA_VERIFY_URL,
            data={"secret": secret, "response": token, "remoteip": remote_ip or ""},
            timeout=RECAPTCHA_TIMEOUT,
        )
        response.raise_for_status()
        result = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("captcha_verify_error", error=str(e))
        return False

    success = result.get("success") is True
    if not success:
        logger.info(
            "captcha_rejected",
            remote_ip=remote_ip,
            error_codes=result.get("error-codes", []),
        )
    return success
