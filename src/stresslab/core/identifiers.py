"""
Distinct identifier types.

Each identifier is its own ``str`` subclass, so a type checker rejects a
``TenantId`` where a ``WorkloadId`` is expected while runtime equality and
hashing stay those of the underlying string.

Example:
    >>> tenant = TenantId("acme")
    >>> tenant == "acme", hash(tenant) == hash("acme")
    (True, True)
    >>> repr(WorkloadId("db-primary"))
    "WorkloadId('db-primary')"
"""

from __future__ import annotations


class _Identifier(str):
    __slots__ = ()

    def __new__(cls, value: str) -> _Identifier:
        if not isinstance(value, str):
            raise TypeError(f"{cls.__name__} must wrap a str, got {type(value).__name__}")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"


class TenantId(_Identifier):
    """Tenant owning a workspace."""

    __slots__ = ()


class WorkloadId(_Identifier):
    """Workload target node in the dependency topology."""

    __slots__ = ()


class RunbookId(_Identifier):
    """Command runbook (and runbook seed) identifier."""

    __slots__ = ()


class SignalId(_Identifier):
    """Recovery signal identifier."""

    __slots__ = ()


class RunId(_Identifier):
    """Workflow run identifier (``<channel>:<tenant>:<epoch-ms>``)."""

    __slots__ = ()


__all__ = ["TenantId", "WorkloadId", "RunbookId", "SignalId", "RunId"]
