from __future__ import annotations

import re

from .ad.models import ProvisionRequest

_USERNAME_RE = re.compile(r"[A-Za-z0-9@._-]{2,64}")


class ValidationError(ValueError):
    """Caller-supplied data was rejected. The message is safe to return."""


def sanitize_user(req: ProvisionRequest) -> ProvisionRequest:
    """Trim all fields and validate the username, in place.

    This is the only validation boundary for writes: nothing reaches
    ``ADClient.provision_principal`` without passing through here.
    """

    req.username = (req.username or "").strip()
    req.password = (req.password or "").strip()
    req.given_name = (req.given_name or "").strip()
    req.surname = (req.surname or "").strip()
    req.display_name = (req.display_name or "").strip()
    req.mail = (req.mail or "").strip()
    req.phone = (req.phone or "").strip()
    req.description = (req.description or "").strip()
    req.organizational_unit = (req.organizational_unit or "").strip()

    if not req.username:
        raise ValidationError("username required")
    if not _USERNAME_RE.fullmatch(req.username):
        raise ValidationError("invalid username")

    req.username = req.username.lower()
    req.organizational_unit = req.organizational_unit.lower()
    return req
