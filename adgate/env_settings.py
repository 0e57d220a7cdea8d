from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator

from .ad.models import ADConfig, split_address


def split_listen_addr(value: str) -> tuple[str, int]:
    """":8080" -> ("0.0.0.0", 8080)."""
    host, _, port = (value or "").rpartition(":")
    host = host.strip("[]") or "0.0.0.0"
    try:
        n = int(port or 8080)
    except ValueError:
        raise ValueError(f"invalid port in BIND_ADDR {value!r}") from None
    if not 0 <= n < 65536:
        raise ValueError(f"invalid port in BIND_ADDR {value!r}")
    return host, n


class EnvSettings(BaseSettings):
    bind_addr: str = Field(":8080", alias="BIND_ADDR")

    ldap_addr: str = Field("dc.example.local:636", alias="LDAP_ADDR")
    ldap_base_dn: str = Field("dc=example,dc=local", alias="LDAP_BASE_DN")
    ldap_bind_dn: str = Field("", alias="LDAP_BIND_DN")
    ldap_bind_password: str = Field("", alias="LDAP_BIND_PASSWORD", repr=False)
    ldap_skip_verify: bool = Field(False, alias="LDAP_SKIP_VERIFY")
    ldap_ca_cert: str = Field("", alias="LDAP_CA_CERT")
    ldap_user_ou: str = Field("", alias="LDAP_USER_OU")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_dir: str = Field("", alias="LOG_DIR")

    class Config:
        populate_by_name = True

    @field_validator("ldap_skip_verify", mode="before")
    @classmethod
    def _lenient_bool(cls, v):
        # Unparsable values fall back to the safe default instead of failing startup.
        if isinstance(v, bool):
            return v
        s = str(v or "").strip().strip("\"'").lower()
        if s in ("1", "t", "true", "y", "yes", "on"):
            return True
        return False

    @field_validator("ldap_base_dn")
    @classmethod
    def _require_base_dn(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("LDAP_BASE_DN must be set")
        return v

    @field_validator("ldap_bind_dn", "ldap_ca_cert", "ldap_user_ou")
    @classmethod
    def _strip(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("ldap_addr")
    @classmethod
    def _check_ldap_addr(cls, v: str) -> str:
        v = (v or "").strip()
        split_address(v)
        return v

    @field_validator("bind_addr")
    @classmethod
    def _check_bind_addr(cls, v: str) -> str:
        v = (v or "").strip()
        split_listen_addr(v)
        return v

    def to_ad_config(self) -> ADConfig:
        return ADConfig(
            address=self.ldap_addr,
            base_dn=self.ldap_base_dn,
            bind_dn=self.ldap_bind_dn,
            bind_password=self.ldap_bind_password,
            tls_skip_verify=self.ldap_skip_verify,
            ca_cert_path=self.ldap_ca_cert,
            user_ou=self.ldap_user_ou,
        )

    def listen_host_port(self) -> tuple[str, int]:
        return split_listen_addr(self.bind_addr)


@lru_cache(maxsize=1)
def get_env() -> EnvSettings:
    return EnvSettings()
