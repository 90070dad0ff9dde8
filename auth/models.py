"""
auth/models.py -- Domain dataclasses for the persisted user account.

Pattern: Data class (pure data container, zero logic). The store does the
work; these only carry rows between the store and its callers.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account.

    id is an opaque string (uuid4 hex); the auth flows never look inside it.
    email doubles as the username. hashed_password is None for accounts
    created through the passwordless strategy.
    """

    email: str
    first_name: str = ""
    last_name: str = ""
    id: str | None = None
    hashed_password: str | None = None  # None = passwordless account
    created_at: str | None = None
    is_active: bool = True

