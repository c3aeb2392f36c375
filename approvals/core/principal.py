"""Request-scoped principal resolved from the bearer token."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, reduced to what authorization needs."""

    id: int
    role: str
