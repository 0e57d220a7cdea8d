"""Active Directory (LDAPS) client package.

Public API:
    - ADConfig, PrincipalRecord, ProvisionRequest
    - ADClient
    - DirectoryError and its subclasses
"""

from .models import ADConfig, PrincipalRecord, ProvisionRequest
from .client import ADClient
from .errors import (
    AddError,
    BindError,
    DirectoryConnectionError,
    DirectoryError,
    EnableError,
    NotFoundError,
    PasswordSetError,
    SearchError,
)

__all__ = [
    "ADConfig",
    "PrincipalRecord",
    "ProvisionRequest",
    "ADClient",
    "DirectoryError",
    "DirectoryConnectionError",
    "BindError",
    "SearchError",
    "AddError",
    "PasswordSetError",
    "EnableError",
    "NotFoundError",
]
