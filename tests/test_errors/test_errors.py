"""Tests for the chainmon error hierarchy."""

from __future__ import annotations

import pytest

from chainmon.errors import (
    ChainError,
    ChainmonError,
    ConfigError,
    DeliveryError,
    InvalidAccountError,
    ReportDecodeError,
    SubscriptionError,
)

# ---------------------------------------------------------------------------
# ChainmonError base class
# ---------------------------------------------------------------------------


class TestChainmonError:
    def test_default_attributes(self) -> None:
        err = ChainmonError("something broke")
        assert str(err) == "something broke"
        assert err.message == "something broke"
        assert err.code == "chainmon-error"

    def test_is_exception(self) -> None:
        with pytest.raises(ChainmonError, match="boom"):
            raise ChainmonError("boom")


# ---------------------------------------------------------------------------
# Subclasses
# ---------------------------------------------------------------------------


class TestSubclasses:
    def test_config_error(self) -> None:
        err = ConfigError("endpoints: field required", field="endpoints")
        assert err.code == "config-error"
        assert err.field == "endpoints"

    def test_invalid_account(self) -> None:
        err = InvalidAccountError("nope")
        assert err.address == "nope"
        assert "'nope'" in err.message

    def test_delivery_error(self) -> None:
        err = DeliveryError("HTTP 500", reporter="matrix")
        assert err.code == "delivery-error"
        assert err.reporter == "matrix"

    def test_report_decode_error(self) -> None:
        assert ReportDecodeError("bad json").code == "report-decode-error"

    def test_chain_errors(self) -> None:
        err = SubscriptionError("stream ended", endpoint="ws://node:9944")
        assert isinstance(err, ChainError)
        assert isinstance(err, ChainmonError)
        assert err.code == "chain-error"
        assert err.endpoint == "ws://node:9944"

    @pytest.mark.parametrize(
        "cls",
        [ChainError, ConfigError, DeliveryError, ReportDecodeError, SubscriptionError],
    )
    def test_all_share_the_base(self, cls) -> None:
        with pytest.raises(ChainmonError):
            raise cls("x")
