"""
auth/emails.py -- Built-in email bodies for login codes, registration codes and
password restore links.

Templates live in auth/templates/email/ and are rendered with Jinja2 with
autoescape on, so an address or name echoed into the body cannot inject
markup. A deployment that wants its own wording supplies any object
satisfying auth.ports.EmailTemplates instead of DefaultEmailTemplates.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.models import ClientContext

SUBJECT_LOGIN_CODE = "Login Code"
SUBJECT_REGISTRATION_CODE = "Registration Code"
SUBJECT_PASSWORD_RESTORE = "Password Restore"

TEMPLATE_DIR = Path(__file__).parent / "templates" / "email"


class DefaultEmailTemplates:
    """Render the bundled templates. ttl_seconds is shown to the reader as minutes."""

    def __init__(self, code_ttl_seconds: int = 3600, template_dir: Path = TEMPLATE_DIR) -> None:
        self.code_ttl_seconds = code_ttl_seconds
        self._env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def _render(self, name: str, **context) -> str:
        return self._env.get_template(name).render(**context)

    def login_code(self, email: str, code: str, ctx: ClientContext) -> str:
        return self._render("login_code.html", email=email, code=code, ttl_minutes=self.code_ttl_seconds // 60)

    def registration_code(self, email: str, code: str, ctx: ClientContext) -> str:
        return self._render(
            "registration_code.html", email=email, code=code, ttl_minutes=self.code_ttl_seconds // 60
        )

    def password_restore(self, user_id: str, link: str, ctx: ClientContext) -> str:
        return self._render("password_restore.html", url=link)
