from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional
import logging
import ssl
import time

from ldap3 import (
    Server,
    Connection,
    NONE,
    SUBTREE,
    Tls,
    MODIFY_REPLACE,
)
from ldap3.core.exceptions import LDAPException

from .errors import (
    AddError,
    BindError,
    DirectoryConnectionError,
    EnableError,
    NotFoundError,
    PasswordSetError,
    SearchError,
)
from .models import ADConfig, PrincipalRecord, ProvisionRequest
from .password import encode_unicode_pwd
from .utils import build_principal_dn, escape_ldap_filter_value

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0
LOOKUP_TIMEOUT_S = 8.0
PROVISION_TIMEOUT_S = 15.0
SEARCH_TIME_LIMIT_S = 10

NORMAL_ACCOUNT = 512  # userAccountControl: enabled, normal user

RESULT_SUCCESS = 0
RESULT_SIZE_LIMIT_EXCEEDED = 4

MEMBER_ATTRIBUTES = [
    "distinguishedName",
    "cn",
    "displayName",
    "mail",
    "sAMAccountName",
    "memberOf",
    "description",
    "badPasswordTime",
]


def _is_timeout(exc: BaseException) -> bool:
    seen: set[int] = set()
    cur: BaseException | None = exc
    while cur is not None and id(cur) not in seen:
        if isinstance(cur, TimeoutError):
            return True
        seen.add(id(cur))
        cur = cur.__cause__ or cur.__context__
    text = str(exc).lower()
    return "timed out" in text or "timeout" in text


def _capped_deadline(deadline: Optional[float], bound_s: float) -> float:
    cap = time.monotonic() + bound_s
    if deadline is None:
        return cap
    return min(deadline, cap)


def _values(attrs: dict[str, Any], name: str) -> list[str]:
    raw = attrs.get(name)
    if raw is None:
        return []
    vals = raw if isinstance(raw, (list, tuple)) else [raw]
    out: list[str] = []
    for v in vals:
        if v is None:
            continue
        if isinstance(v, (bytes, bytearray)):
            v = bytes(v).decode("utf-8", errors="replace")
        out.append(str(v))
    return out


def _first(attrs: dict[str, Any], name: str) -> str:
    vals = _values(attrs, name)
    return vals[0].strip() if vals else ""


class ADClient:
    """LDAPS client for member lookup and provisioning.

    Every operation dials, optionally binds as the service account, runs a
    single request and unbinds. Nothing is pooled, so one instance can be
    shared by all request threads.
    """

    @staticmethod
    def _check_ca_file(path: str) -> str:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = f.read()
        except OSError as e:
            raise ValueError(f"load CA pool: {e}") from e
        if "-----BEGIN CERTIFICATE-----" not in data or "-----END CERTIFICATE-----" not in data:
            raise ValueError(f"failed to parse CA certificate(s) from {path}")
        return path

    def __init__(self, cfg: ADConfig, logger: logging.Logger | None = None) -> None:
        self.cfg = cfg
        self.log = logger or log

        tls_kwargs: dict[str, Any] = {
            "validate": ssl.CERT_NONE if cfg.tls_skip_verify else ssl.CERT_REQUIRED,
            "ssl_options": [ssl.OP_NO_TLSv1, ssl.OP_NO_TLSv1_1],
        }
        if cfg.ca_cert_path:
            tls_kwargs["ca_certs_file"] = self._check_ca_file(cfg.ca_cert_path)
        if cfg.tls_skip_verify:
            self.log.warning(
                "LDAPS certificate verification is DISABLED (LDAP_SKIP_VERIFY); connections to %s are insecure",
                cfg.address,
            )

        self.tls = Tls(**tls_kwargs)

    # ---------------------------
    # Connection handling
    # ---------------------------

    def _conn(self, timeout_s: float) -> Connection:
        # A dedicated Server per dial so connect_timeout tracks the deadline.
        server = Server(
            host=self.cfg.host,
            port=self.cfg.port,
            use_ssl=True,
            get_info=NONE,
            tls=self.tls,
            connect_timeout=timeout_s,
        )
        return Connection(
            server,
            user=self.cfg.bind_dn or None,
            password=self.cfg.bind_password or None,
            auto_bind=False,
            receive_timeout=timeout_s,
            raise_exceptions=False,
        )

    def _release(self, conn: Connection) -> None:
        try:
            conn.unbind()
        except LDAPException as e:
            self.log.debug("unbind failed: %s", e)

    def connect(self, deadline: Optional[float] = None) -> Connection:
        """Dial LDAPS and bind with the service account (if configured).

        ``deadline`` is a ``time.monotonic()`` value. The remaining time is
        used as both connect and receive timeout. The caller must release the
        returned connection.
        """

        if deadline is None:
            deadline = time.monotonic() + DEFAULT_TIMEOUT_S
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DirectoryConnectionError(f"failed to dial {self.cfg.url}: deadline exceeded", timeout=True)

        try:
            conn = self._conn(remaining)
            conn.open()
        except (LDAPException, OSError, ValueError) as e:
            self.log.error("ldaps dial failed addr=%s: %s", self.cfg.address, e)
            raise DirectoryConnectionError(
                f"failed to dial {self.cfg.url}: {e}", cause=e, timeout=_is_timeout(e)
            ) from e

        if self.cfg.bind_dn:
            try:
                ok = bool(conn.bind())
            except LDAPException as e:
                self._release(conn)
                self.log.error("service bind failed bind_dn=%s: %s", self.cfg.bind_dn, e)
                raise BindError(f"service bind failed: {e}", cause=e, timeout=_is_timeout(e)) from e
            if not ok:
                res = dict(conn.result or {})
                self._release(conn)
                self.log.error(
                    "service bind failed bind_dn=%s: %s", self.cfg.bind_dn, res.get("description", "")
                )
                raise BindError.from_result("service bind failed", res)

        return conn

    @contextmanager
    def session(self, deadline: Optional[float] = None) -> Iterator[Connection]:
        conn = self.connect(deadline)
        try:
            yield conn
        finally:
            self._release(conn)

    def check_health(self, deadline: Optional[float] = None) -> None:
        """Dial + bind and release; raises on failure."""
        conn = self.connect(deadline)
        self._release(conn)

    # ---------------------------
    # Lookup
    # ---------------------------

    def lookup_principal(self, query: str, deadline: Optional[float] = None) -> PrincipalRecord:
        """Find a user by userPrincipalName or sAMAccountName."""
        deadline = _capped_deadline(deadline, LOOKUP_TIMEOUT_S)

        esc = escape_ldap_filter_value(query)
        flt = f"(|(userPrincipalName={esc})(sAMAccountName={esc}))"

        with self.session(deadline) as conn:
            try:
                conn.search(
                    search_base=self.cfg.base_dn,
                    search_filter=flt,
                    search_scope=SUBTREE,
                    attributes=MEMBER_ATTRIBUTES,
                    size_limit=1,
                    time_limit=SEARCH_TIME_LIMIT_S,
                )
            except LDAPException as e:
                self.log.error("ldap search failed filter=%s username=%s: %s", flt, query, e)
                raise SearchError(f"ldap search failed: {e}", cause=e, timeout=_is_timeout(e)) from e

            res = dict(conn.result or {})
            entries = list(conn.entries or [])
            code = res.get("result", RESULT_SUCCESS)
            if code not in (RESULT_SUCCESS, RESULT_SIZE_LIMIT_EXCEEDED) or (
                code == RESULT_SIZE_LIMIT_EXCEEDED and not entries
            ):
                self.log.error(
                    "ldap search failed filter=%s username=%s: %s", flt, query, res.get("description", "")
                )
                raise SearchError.from_result("ldap search failed", res)

            if not entries:
                raise NotFoundError(f"no entries found for {query}")

            return self._to_record(entries[0])

    @staticmethod
    def _to_record(entry: Any) -> PrincipalRecord:
        attrs = dict(entry.entry_attributes_as_dict or {})
        return PrincipalRecord(
            dn=_first(attrs, "distinguishedName") or str(getattr(entry, "entry_dn", "") or ""),
            cn=_first(attrs, "cn"),
            display_name=_first(attrs, "displayName"),
            mail=_first(attrs, "mail"),
            sam_account_name=_first(attrs, "sAMAccountName"),
            description=_first(attrs, "description"),
            bad_password_time=_first(attrs, "badPasswordTime"),
            member_of=[m.strip() for m in _values(attrs, "memberOf")],
        )

    # ---------------------------
    # Provisioning
    # ---------------------------

    def principal_dn(self, req: ProvisionRequest) -> str:
        return build_principal_dn(req.username, req.organizational_unit or self.cfg.user_ou, self.cfg.base_dn)

    def add_attributes(self, req: ProvisionRequest) -> dict[str, Any]:
        attrs: dict[str, Any] = {
            "objectClass": ["top", "person", "organizationalPerson", "user"],
            "cn": req.username,
            "sn": req.surname or req.username,
            "sAMAccountName": req.username,
        }
        if req.given_name:
            attrs["givenName"] = req.given_name
        if req.display_name:
            attrs["displayName"] = req.display_name
        if req.mail:
            attrs["mail"] = req.mail
        if req.phone:
            attrs["telephoneNumber"] = req.phone
        if req.description:
            attrs["description"] = req.description

        dom = self.cfg.domain
        if dom:
            attrs["userPrincipalName"] = f"{req.username}@{dom}"
        return attrs

    def provision_principal(self, req: ProvisionRequest, deadline: Optional[float] = None) -> str:
        """Create the user and, when a password is given, set it and enable the account.

        There is no rollback: if the password or enable step fails, the entry
        stays in the directory and the error is raised to the caller.

        Returns the DN of the new entry.
        """

        deadline = _capped_deadline(deadline, PROVISION_TIMEOUT_S)
        dn = self.principal_dn(req)
        attrs = self.add_attributes(req)

        with self.session(deadline) as conn:
            try:
                ok = bool(conn.add(dn, attributes=attrs))
            except LDAPException as e:
                self.log.error("ldap add failed dn=%s username=%s: %s", dn, req.username, e)
                raise AddError(f"ldap add failed: {e}", cause=e, timeout=_is_timeout(e)) from e
            if not ok:
                res = dict(conn.result or {})
                self.log.error(
                    "ldap add failed dn=%s username=%s: %s", dn, req.username, res.get("description", "")
                )
                raise AddError.from_result("ldap add failed", res)

            if req.password:
                try:
                    self.set_unicode_pwd(conn, dn, req.password)
                except PasswordSetError as e:
                    self.log.error("set unicodePwd failed dn=%s username=%s: %s", dn, req.username, e)
                    raise
                try:
                    self.enable_account(conn, dn)
                except EnableError as e:
                    self.log.warning("enable account failed dn=%s username=%s: %s", dn, req.username, e)
                    raise

        self.log.info("user added dn=%s username=%s", dn, req.username)
        return dn

    def set_unicode_pwd(self, conn: Connection, dn: str, password: str) -> None:
        if not password:
            return
        changes = {"unicodePwd": [(MODIFY_REPLACE, [encode_unicode_pwd(password)])]}
        try:
            ok = bool(conn.modify(dn, changes))
        except LDAPException as e:
            raise PasswordSetError(f"set unicodePwd failed: {e}", cause=e, timeout=_is_timeout(e)) from e
        if not ok:
            raise PasswordSetError.from_result("set unicodePwd failed", conn.result)

    def enable_account(self, conn: Connection, dn: str) -> None:
        changes = {"userAccountControl": [(MODIFY_REPLACE, [str(NORMAL_ACCOUNT)])]}
        try:
            ok = bool(conn.modify(dn, changes))
        except LDAPException as e:
            raise EnableError(f"enable account failed: {e}", cause=e, timeout=_is_timeout(e)) from e
        if not ok:
            raise EnableError.from_result("enable account failed", conn.result)
