from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

from .utils import domain_suffix


@dataclass(frozen=True)
class ADConfig:
    address: str
    base_dn: str
    bind_dn: str = ""
    bind_password: str = field(default="", repr=False)
    tls_skip_verify: bool = False
    ca_cert_path: str = ""
    user_ou: str = ""

    def __post_init__(self) -> None:
        if not (self.base_dn or "").strip():
            raise ValueError("base_dn must be set")
        split_address(self.address)

    @property
    def host(self) -> str:
        return split_address(self.address)[0]

    @property
    def port(self) -> int:
        return split_address(self.address)[1]

    @property
    def url(self) -> str:
        return f"ldaps://{self.address}"

    @property
    def domain(self) -> str:
        return domain_suffix(self.base_dn)


def split_address(address: str, default_port: int = 636) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts."""
    s = (address or "").strip()
    if s.startswith("["):
        host, _, rest = s[1:].partition("]")
        port = rest.lstrip(":")
    elif s.count(":") == 1:
        host, _, port = s.partition(":")
    else:
        host, port = s, ""
    if not host:
        raise ValueError(f"missing host in directory address {address!r}")
    if not port:
        return host, default_port
    try:
        n = int(port)
    except ValueError:
        raise ValueError(f"invalid port in directory address {address!r}") from None
    if not 0 < n < 65536:
        raise ValueError(f"invalid port in directory address {address!r}")
    return host, n


@dataclass(frozen=True)
class PrincipalRecord:
    dn: str = ""
    cn: str = ""
    display_name: str = ""
    mail: str = ""
    sam_account_name: str = ""
    description: str = ""
    bad_password_time: str = ""
    member_of: List[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        """Directory attribute names, empty values omitted."""
        out: dict[str, Any] = {
            "distinguishedName": self.dn,
            "cn": self.cn,
            "displayName": self.display_name,
            "mail": self.mail,
            "sAMAccountName": self.sam_account_name,
            "memberOf": list(self.member_of),
            "description": self.description,
            "badPasswordTime": self.bad_password_time,
        }
        return {k: v for k, v in out.items() if v}


@dataclass
class ProvisionRequest:
    username: str
    password: str = field(default="", repr=False)
    given_name: str = ""
    surname: str = ""
    display_name: str = ""
    mail: str = ""
    phone: str = ""
    description: str = ""
    organizational_unit: str = ""
