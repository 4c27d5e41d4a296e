"""Unit tests for the GameStreamClient façade."""

import pytest

from conftest import serverinfo_doc, xml_doc
from gamestream.client import UNKNOWN_ERROR, GameStreamClient, parse_address
from gamestream.errors import OperationFailedError, WrongStateError
from gamestream.version import VersionGate


@pytest.fixture
def client(identity, transport) -> GameStreamClient:
    return GameStreamClient(identity, transport=transport, version_gate=VersionGate(3, 7))


class TestParseAddress:
    @pytest.mark.parametrize("address, expected", [
        ("192.168.1.20", ("192.168.1.20", 47989)),
        ("192.168.1.20:48000", ("192.168.1.20", 48000)),
        ("gaming-pc.local", ("gaming-pc.local", 47989)),
        ("[fe80::1]:48000", ("fe80::1", 48000)),
        ("fe80::1", ("fe80::1", 47989)),
    ])
    def test_parses(self, address, expected) -> None:
        assert parse_address(address) == expected

    def test_empty_host_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_address(":48000")


class TestConnect:
    def test_connect_runs_discovery(self, client, transport) -> None:
        transport.route("serverinfo", serverinfo_doc())

        record = client.connect("192.168.1.20:48000")

        assert record.http_port == 48000
        assert record.https_port == 47984
        assert record.hostname == "gaming-pc"
        assert transport.calls[0].params["uniqueid"] == client.identity.unique_id


class TestLastError:
    def test_defaults_to_placeholder(self, client) -> None:
        assert client.last_error == UNKNOWN_ERROR

    def test_records_failure_message(self, client, host) -> None:
        host.paired = True
        with pytest.raises(WrongStateError):
            client.pair(host, "1234")
        assert client.last_error == "Already paired"

    def test_is_per_client(self, identity, transport, host) -> None:
        first = GameStreamClient(identity, transport=transport)
        second = GameStreamClient(identity, transport=transport)
        transport.route("cancel", xml_doc(cancel=0))

        with pytest.raises(OperationFailedError):
            first.quit_app(host)

        assert first.last_error != UNKNOWN_ERROR
        assert second.last_error == UNKNOWN_ERROR

    def test_set_last_error(self, client) -> None:
        client.set_last_error("boom")
        assert client.last_error == "boom"
