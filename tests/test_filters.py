import pytest

from corsrelay.core.errors import HostNotAllowed, InvalidURL, MissingParameter
from corsrelay.filter.header_filter import (
    HOP_BY_HOP_HEADERS,
    event_stream_headers,
    relay_response_headers,
    strip_hop_by_hop,
)
from corsrelay.filter.host_policy import check_target, is_host_allowed, parse_target_url


class TestHostPolicy:

    def test_empty_allowlist_allows_everything(self):
        assert is_host_allowed("http://anything.example/x", frozenset())
        assert is_host_allowed("not even a url", frozenset())

    def test_exact_hostname_membership(self):
        allowed = frozenset({"rs.local", "node.example.com"})
        assert is_host_allowed("http://rs.local:8080/sse", allowed)
        assert is_host_allowed("https://node.example.com/data.json", allowed)
        assert not is_host_allowed("http://evil.rs.local/", allowed)
        assert not is_host_allowed("http://node.example.com.evil/", allowed)

    def test_hostname_is_normalized_before_matching(self):
        assert is_host_allowed("http://RS.LOCAL/data", frozenset({"rs.local"}))

    def test_unparsable_url_is_denied(self):
        assert not is_host_allowed("http://[::1/", frozenset({"rs.local"}))

    @pytest.mark.parametrize("url", [None, "", "   "])
    def test_missing_url(self, url):
        with pytest.raises(MissingParameter):
            parse_target_url(url)

    @pytest.mark.parametrize("url", ["not-a-url", "/relative/path", "ftp://host/file", "http://", "http://host:99999/"])
    def test_invalid_url(self, url):
        with pytest.raises(InvalidURL):
            parse_target_url(url)

    def test_check_target_rejects_disallowed_host(self):
        with pytest.raises(HostNotAllowed):
            check_target("http://other.test/", frozenset({"allowed.test"}))
        assert check_target(" http://allowed.test/x ", frozenset({"allowed.test"})) == "http://allowed.test/x"


class TestHeaderFilter:

    def test_hop_by_hop_headers_are_dropped_any_case(self):
        upstream = [(name.upper(), "v") for name in HOP_BY_HOP_HEADERS]
        upstream += [("Content-Type", "application/json"), ("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")]
        assert strip_hop_by_hop(upstream) == [
            ("Content-Type", "application/json"),
            ("Set-Cookie", "a=1"),
            ("Set-Cookie", "b=2"),
        ]

    def test_relay_headers_override_cors_and_caching(self):
        headers = relay_response_headers([
            ("access-control-allow-origin", "https://only.example"),
            ("cache-control", "max-age=600"),
            ("x-upstream", "1"),
            ("Keep-Alive", "timeout=5"),
        ])
        lowered = [(k.lower(), v) for k, v in headers]
        assert ("x-upstream", "1") in lowered
        assert [v for k, v in lowered if k == "access-control-allow-origin"] == ["*"]
        assert [v for k, v in lowered if k == "cache-control"] == ["no-store"]
        assert all(k not in HOP_BY_HOP_HEADERS for k, _ in lowered)

    def test_event_stream_headers(self):
        headers = dict(event_stream_headers())
        assert headers["Content-Type"].startswith("text/event-stream")
        assert headers["Cache-Control"] == "no-store"
        assert headers["Access-Control-Allow-Origin"] == "*"
