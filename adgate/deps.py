from __future__ import annotations

from typing import Optional, Protocol

from fastapi import Request

from .ad.models import PrincipalRecord, ProvisionRequest


class MemberDirectory(Protocol):
    """What the HTTP layer needs from the directory. ``ADClient`` implements it."""

    def check_health(self, deadline: Optional[float] = None) -> None: ...

    def lookup_principal(self, query: str, deadline: Optional[float] = None) -> PrincipalRecord: ...

    def provision_principal(self, req: ProvisionRequest, deadline: Optional[float] = None) -> str: ...


def get_directory(request: Request) -> MemberDirectory:
    return request.app.state.directory
