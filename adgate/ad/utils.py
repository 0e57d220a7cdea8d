from __future__ import annotations

from ldap3.utils.dn import escape_rdn


def escape_ldap_filter_value(value: str) -> str:
    """RFC 4515 escaping for LDAP filter values."""
    out: list[str] = []
    for ch in value:
        if ch == "\\":
            out.append("\\5c")
        elif ch == "*":
            out.append("\\2a")
        elif ch == "(":
            out.append("\\28")
        elif ch == ")":
            out.append("\\29")
        elif ch == "\x00":
            out.append("\\00")
        else:
            out.append(ch)
    return "".join(out)


def escape_dn_component(value: str) -> str:
    """Escape an attribute value for use inside a single RDN.

    ldap3's ``escape_rdn`` covers the RFC 4514 set and leading/trailing
    spaces; ``#`` is escaped anywhere in the value, not only in front.
    """
    if not value:
        return ""
    out = escape_rdn(value)
    lead = 2 if out.startswith("\\#") else 0
    return out[:lead] + out[lead:].replace("#", "\\#")


def build_principal_dn(username: str, organizational_unit: str, base_dn: str) -> str:
    cn = escape_dn_component(username)
    ou = (organizational_unit or "").strip()
    if ou:
        if ou.lower().endswith(base_dn.lower()):
            return f"CN={cn},{ou}"
        return f"CN={cn},{ou},{base_dn}"
    return f"CN={cn},{base_dn}"


def domain_suffix(base_dn: str) -> str:
    """dc=example,dc=local -> example.local ("" when there are no dc= parts)."""
    parts: list[str] = []
    for comp in (base_dn or "").split(","):
        comp = comp.strip()
        if comp.lower().startswith("dc=") and len(comp) > 3:
            parts.append(comp[3:].strip())
    return ".".join(parts)
