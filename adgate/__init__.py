"""Directory gateway: HTTP to Active Directory over LDAPS."""

__version__ = "0.1.0"
