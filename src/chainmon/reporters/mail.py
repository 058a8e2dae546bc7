"""Email reporter: HTML mail over SMTP with optional PGP encryption."""

from __future__ import annotations

import asyncio
import logging
from email.message import EmailMessage
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosmtplib
import gnupg

from chainmon.errors.chainmon_errors import ConfigError, DeliveryError
from chainmon.reporters.base import Reporter
from chainmon.reports.templates import render_html

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chainmon.config.settings import EmailConfig
    from chainmon.reports.models import Report

logger = logging.getLogger(__name__)

_KEY_FIELD = "reporters.email.gpgpubkey"


class PgpEncryptor:
    """Encrypts message bodies to a single armored public key."""

    def __init__(self, key_path: str, *, gnupghome: str | None = None) -> None:
        try:
            armored = Path(key_path).read_text(encoding="utf-8")
        except OSError as exc:
            msg = f"cannot read PGP key {key_path}: {exc}"
            raise ConfigError(msg, field=_KEY_FIELD) from exc
        try:
            self._gpg = gnupg.GPG(gnupghome=gnupghome)
        except (OSError, ValueError) as exc:
            msg = f"cannot start gpg for PGP key {key_path}: {exc}"
            raise ConfigError(msg, field=_KEY_FIELD) from exc
        result = self._gpg.import_keys(armored)
        if not result.fingerprints:
            raise ConfigError(f"no PGP key found in {key_path}", field=_KEY_FIELD)
        self._fingerprints = list(result.fingerprints)

    def encrypt(self, text: str) -> str:
        encrypted = self._gpg.encrypt(text, self._fingerprints, always_trust=True)
        if not encrypted.ok:
            raise DeliveryError(f"PGP encryption failed: {encrypted.status}", reporter="email")
        return str(encrypted)


class EmailReporter(Reporter):
    """Sends each report (or batch) as one mail per recipient."""

    name = "email"
    supports_group = True

    def __init__(self, config: EmailConfig, *, encryptor: PgpEncryptor | None = None) -> None:
        self._config = config
        self._smtp = config.transporter
        self._encryptor = encryptor
        if self._encryptor is None and config.gpgpubkey:
            self._encryptor = PgpEncryptor(config.gpgpubkey, gnupghome=config.gnupghome)
        logger.info(
            "✅ [%s] registering email reporter from %s to %s",
            self.name,
            config.from_,
            ", ".join(config.to),
        )

    async def report(self, report: Report) -> None:
        await self.send_email(self._config.subject, render_html(report))

    async def group_report(self, reports: Sequence[Report]) -> None:
        body = "\n<hr/>\n".join(render_html(r) for r in reports)
        await self.send_email(f"{self._config.subject} ({len(reports)})", body)

    async def send_email(self, subject: str, html_body: str) -> None:
        """Send *html_body* to every configured recipient."""
        if self._encryptor is not None:
            body = await asyncio.to_thread(self._encryptor.encrypt, html_body)
            subtype = "plain"
        else:
            body = html_body
            subtype = "html"
        results = await asyncio.gather(
            *(self._send_one(to, subject, body, subtype) for to in self._config.to),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            msg = (
                f"email delivery failed for {len(failures)}/{len(results)} recipients: "
                f"{failures[0]}"
            )
            raise DeliveryError(msg, reporter=self.name) from failures[0]

    async def _send_one(self, to: str, subject: str, body: str, subtype: str) -> Any:
        message = EmailMessage()
        message["From"] = self._config.from_
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body, subtype=subtype)
        return await aiosmtplib.send(
            message,
            hostname=self._smtp.host,
            port=self._smtp.port,
            username=self._smtp.username or None,
            password=self._smtp.password or None,
            use_tls=self._smtp.use_tls,
            start_tls=self._smtp.start_tls,
            timeout=self._smtp.timeout,
        )
