"""Tests for the concrete reporters: console, file, Matrix, Telegram, email."""

from __future__ import annotations

import io
import json
from email.message import EmailMessage

import httpx
import pytest

from chainmon.config.settings import EmailConfig, FsConfig, MatrixConfig, TelegramConfig
from chainmon.errors.chainmon_errors import ConfigError, DeliveryError
from chainmon.matching.accounts import WILDCARD
from chainmon.reporters import mail
from chainmon.reporters.console import ConsoleReporter
from chainmon.reporters.fs import FileSystemReporter
from chainmon.reporters.mail import EmailReporter
from chainmon.reporters.matrix import MatrixReporter
from chainmon.reporters.telegram import TelegramReporter, chunk_text
from chainmon.reports.models import ActivityItem, ActivityKind, NotificationReport, StatusReport

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _report(number: int = 7) -> NotificationReport:
    return NotificationReport(
        chain="Polkadot",
        block_number=number,
        block_hash=f"0x{number:x}",
        timestamp=1_700_000_000_000,
        items=(
            ActivityItem(
                kind=ActivityKind.EVENT,
                pallet="Balances",
                method="Transfer",
                account=WILDCARD,
                payload={"amount": 1},
            ),
        ),
    )


def _matrix_config() -> MatrixConfig:
    return MatrixConfig(
        server="https://matrix.test",
        room_id="!room:matrix.test",
        user_id="@bot:matrix.test",
        access_token="secret",
    )


def _telegram_config() -> TelegramConfig:
    return TelegramConfig(bot_token="123:abc", chat_id="-100", api_url="https://tg.test")


def _email_config(**overrides) -> EmailConfig:
    values = {
        "from": "bot@chainmon.test",
        "to": ["a@chainmon.test", "b@chainmon.test"],
        "transporter": {"host": "smtp.chainmon.test", "port": 2525},
    }
    values.update(overrides)
    return EmailConfig.model_validate(values)


def _attach(reporter, handler) -> None:
    reporter._client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url=reporter._base_url,
        headers=reporter._headers,
    )


# ---------------------------------------------------------------------------
# Console / file
# ---------------------------------------------------------------------------


class TestConsoleReporter:
    async def test_prints_raw(self) -> None:
        stream = io.StringIO()
        reporter = ConsoleReporter(stream=stream)
        await reporter.report(_report())
        assert "🎤 Events at #7" in stream.getvalue()

    async def test_status(self) -> None:
        stream = io.StringIO()
        await ConsoleReporter(stream=stream).report(StatusReport(message="hi"))
        assert "Status message: hi" in stream.getvalue()


class TestFileSystemReporter:
    async def test_appends_one_line_per_report(self, tmp_path) -> None:
        path = tmp_path / "out" / "reports.log"
        reporter = FileSystemReporter(FsConfig(path=str(path)))
        await reporter.report(_report(1))
        await reporter.group_report([_report(2), _report(3)])
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3
        assert "#1" in lines[0]
        assert "#3" in lines[2]


# ---------------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------------


class TestMatrixReporter:
    async def test_not_started_raises(self) -> None:
        reporter = MatrixReporter(_matrix_config())
        with pytest.raises(DeliveryError, match="not started"):
            await reporter.report(_report())

    async def test_start_and_clean(self) -> None:
        reporter = MatrixReporter(_matrix_config())
        await reporter.start()
        assert reporter.is_started
        await reporter.clean()
        assert not reporter.is_started

    async def test_sends_room_message(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"event_id": "$1"})

        reporter = MatrixReporter(_matrix_config())
        _attach(reporter, handler)
        await reporter.report(_report())

        (request,) = seen
        assert request.method == "PUT"
        raw_path = request.url.raw_path.decode()
        assert raw_path.startswith("/_matrix/client/v3/rooms/%21room%3Amatrix.test/send/")
        assert "/m.room.message/" in raw_path
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["msgtype"] == "m.text"
        assert body["format"] == "org.matrix.custom.html"
        assert "Notification" in body["formatted_body"]

    async def test_group_is_one_message(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        reporter = MatrixReporter(_matrix_config())
        _attach(reporter, handler)
        await reporter.group_report([_report(1), _report(2)])
        assert len(seen) == 1
        assert "</br>" in json.loads(seen[0].content)["body"]

    async def test_retries_server_errors(self) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] < 3:
                return httpx.Response(502)
            return httpx.Response(200, json={})

        reporter = MatrixReporter(_matrix_config(), retry_delay=0)
        _attach(reporter, handler)
        await reporter.report(_report())
        assert calls["n"] == 3

    async def test_client_error_is_not_retried(self) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(403, json={"errcode": "M_FORBIDDEN"})

        reporter = MatrixReporter(_matrix_config(), retry_delay=0)
        _attach(reporter, handler)
        with pytest.raises(DeliveryError, match="403"):
            await reporter.report(_report())
        assert calls["n"] == 1

    async def test_exhausted_retries(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        reporter = MatrixReporter(_matrix_config(), max_retries=1, retry_delay=0)
        _attach(reporter, handler)
        with pytest.raises(DeliveryError, match="delivery failed"):
            await reporter.report(_report())


# ---------------------------------------------------------------------------
# Telegram
# ---------------------------------------------------------------------------


class TestChunkText:
    def test_short(self) -> None:
        assert chunk_text("abc", 10) == ["abc"]

    def test_exact_chunks(self) -> None:
        assert chunk_text("a" * 25, 10) == ["a" * 10, "a" * 10, "a" * 5]

    def test_empty(self) -> None:
        assert chunk_text("", 10) == [""]


class TestTelegramReporter:
    async def test_posts_markdown(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True, "result": {}})

        reporter = TelegramReporter(_telegram_config())
        _attach(reporter, handler)
        await reporter.report(_report())

        (request,) = seen
        assert request.url.host == "tg.test"
        assert request.url.path.endswith("/sendMessage")
        assert "bot123" in request.url.path
        body = json.loads(request.content)
        assert body["chat_id"] == "-100"
        assert body["parse_mode"] == "Markdown"
        assert "[#7]" in body["text"]

    async def test_long_message_is_chunked(self) -> None:
        texts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            texts.append(json.loads(request.content)["text"])
            return httpx.Response(200, json={"ok": True})

        reporter = TelegramReporter(_telegram_config(), max_len=40)
        _attach(reporter, handler)
        await reporter.report(_report())
        assert len(texts) > 1
        assert all(len(t) <= 40 for t in texts)

    async def test_not_ok_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": False, "description": "chat not found"})

        reporter = TelegramReporter(_telegram_config())
        _attach(reporter, handler)
        with pytest.raises(DeliveryError, match="chat not found"):
            await reporter.report(_report())


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


class _FakeEncryptor:
    def encrypt(self, text: str) -> str:
        return f"-----BEGIN PGP MESSAGE-----\n{len(text)}\n-----END PGP MESSAGE-----"


class TestEmailReporter:
    async def test_one_mail_per_recipient(self, monkeypatch: pytest.MonkeyPatch) -> None:
        sent: list[tuple[EmailMessage, dict]] = []

        async def fake_send(message, **kwargs):
            sent.append((message, kwargs))
            return ({}, "OK")

        monkeypatch.setattr(mail.aiosmtplib, "send", fake_send)
        reporter = EmailReporter(_email_config())
        await reporter.report(_report())

        assert sorted(m["To"] for m, _ in sent) == ["a@chainmon.test", "b@chainmon.test"]
        message, kwargs = sent[0]
        assert message["From"] == "bot@chainmon.test"
        assert message.get_content_subtype() == "html"
        assert kwargs["hostname"] == "smtp.chainmon.test"
        assert kwargs["port"] == 2525

    async def test_group_subject(self, monkeypatch: pytest.MonkeyPatch) -> None:
        subjects: list[str] = []

        async def fake_send(message, **kwargs):
            subjects.append(message["Subject"])

        monkeypatch.setattr(mail.aiosmtplib, "send", fake_send)
        reporter = EmailReporter(_email_config(to=["a@chainmon.test"], subject="chainmon"))
        await reporter.group_report([_report(1), _report(2)])
        assert subjects == ["chainmon (2)"]

    async def test_encrypted_body(self, monkeypatch: pytest.MonkeyPatch) -> None:
        bodies: list[EmailMessage] = []

        async def fake_send(message, **kwargs):
            bodies.append(message)

        monkeypatch.setattr(mail.aiosmtplib, "send", fake_send)
        reporter = EmailReporter(
            _email_config(to=["a@chainmon.test"]),
            encryptor=_FakeEncryptor(),  # type: ignore[arg-type]
        )
        await reporter.report(_report())
        (message,) = bodies
        assert message.get_content_subtype() == "plain"
        assert "BEGIN PGP MESSAGE" in message.get_content()

    async def test_smtp_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def fake_send(message, **kwargs):
            if message["To"] == "b@chainmon.test":
                raise OSError("connection refused")

        monkeypatch.setattr(mail.aiosmtplib, "send", fake_send)
        reporter = EmailReporter(_email_config())
        with pytest.raises(DeliveryError, match="1/2 recipients"):
            await reporter.report(_report())

    def test_missing_pgp_key_is_config_error(self, tmp_path) -> None:
        config = _email_config(gpgpubkey=str(tmp_path / "missing.asc"))
        with pytest.raises(ConfigError, match="cannot read PGP key") as exc_info:
            EmailReporter(config)
        assert exc_info.value.field == "reporters.email.gpgpubkey"

    def test_missing_gpg_binary_is_config_error(
        self, tmp_path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        key = tmp_path / "key.asc"
        key.write_text("-----BEGIN PGP PUBLIC KEY BLOCK-----\n", encoding="utf-8")

        def no_gpg(**kwargs):
            raise OSError("Unable to run gpg (gpg) - it may not be available.")

        monkeypatch.setattr(mail.gnupg, "GPG", no_gpg)
        with pytest.raises(ConfigError, match="cannot start gpg") as exc_info:
            EmailReporter(_email_config(gpgpubkey=str(key)))
        assert exc_info.value.field == "reporters.email.gpgpubkey"
