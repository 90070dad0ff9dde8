"""auth/ -- Authentication orchestration for Gatehouse.

Flows (login, registration, password restore/reset, logout) live here along
with the strategy configuration and the default adapters they talk to.

Layer rule: auth/ may import from core/ and third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
