from __future__ import annotations

from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient

from adgate.ad.models import PrincipalRecord, ProvisionRequest
from adgate.main import create_app


class FakeDirectory:
    """In-memory stand-in for ADClient; each operation can be stubbed."""

    def __init__(self) -> None:
        self.health: Optional[Callable[[], None]] = None
        self.lookup: Optional[Callable[[str], PrincipalRecord]] = None
        self.provision: Optional[Callable[[ProvisionRequest], str]] = None
        self.lookups: list[str] = []
        self.provisioned: list[ProvisionRequest] = []
        self.deadlines: list[Optional[float]] = []

    def check_health(self, deadline: Optional[float] = None) -> None:
        self.deadlines.append(deadline)
        if self.health is not None:
            self.health()

    def lookup_principal(self, query: str, deadline: Optional[float] = None) -> PrincipalRecord:
        self.lookups.append(query)
        self.deadlines.append(deadline)
        if self.lookup is not None:
            return self.lookup(query)
        return PrincipalRecord(sam_account_name=query)

    def provision_principal(self, req: ProvisionRequest, deadline: Optional[float] = None) -> str:
        self.provisioned.append(req)
        self.deadlines.append(deadline)
        if self.provision is not None:
            return self.provision(req)
        return f"CN={req.username},dc=example,dc=local"


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def app(directory):
    return create_app(directory)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
