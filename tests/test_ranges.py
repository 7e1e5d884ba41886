"""Tests for range expression parsing."""

import pytest

from lan_sweep.ranges import FORMAT_HELP, InvalidRangeError, is_ipv4, parse_range


class TestCIDR:
    """Tests for CIDR expansion."""

    def test_slash_30(self):
        """Should include network and broadcast addresses."""
        assert parse_range("192.168.1.0/30") == [
            "192.168.1.0",
            "192.168.1.1",
            "192.168.1.2",
            "192.168.1.3",
        ]

    @pytest.mark.parametrize("prefix", [24, 28, 31, 32])
    def test_size_matches_prefix(self, prefix):
        """Should expand to 2^(32-prefix) ascending addresses."""
        addresses = parse_range(f"10.20.30.0/{prefix}")

        assert len(addresses) == 2 ** (32 - prefix)
        assert addresses[0] == "10.20.30.0"
        assert addresses == sorted(addresses, key=lambda a: tuple(int(o) for o in a.split(".")))

    def test_slash_24_bounds(self):
        """Should start at network and end at broadcast address."""
        addresses = parse_range("192.168.5.0/24")

        assert addresses[0] == "192.168.5.0"
        assert addresses[-1] == "192.168.5.255"

    def test_host_bits_are_tolerated(self):
        """Should use the enclosing block when host bits are set."""
        assert parse_range("192.168.1.5/30") == [
            "192.168.1.4",
            "192.168.1.5",
            "192.168.1.6",
            "192.168.1.7",
        ]

    def test_invalid_prefix(self):
        """Should reject prefixes outside 0-32."""
        with pytest.raises(InvalidRangeError, match="Invalid CIDR format"):
            parse_range("192.168.1.0/33")

    def test_invalid_base_address(self):
        """Should reject a malformed network address."""
        with pytest.raises(InvalidRangeError):
            parse_range("192.168.1/24")


class TestHyphenRange:
    """Tests for start-end ranges."""

    def test_adjacent_addresses(self):
        """Should return both ends when start precedes end."""
        assert parse_range("10.0.0.255-10.0.1.0") == ["10.0.0.255", "10.0.1.0"]

    def test_whitespace_around_hyphen(self):
        """Should tolerate spaces around the hyphen."""
        assert parse_range(" 10.0.0.1 - 10.0.0.3 ") == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]

    def test_equal_bounds(self):
        """Should return a single address when start equals end."""
        assert parse_range("10.0.0.7-10.0.0.7") == ["10.0.0.7"]

    def test_reversed_range_fails(self):
        """Should reject start greater than end."""
        with pytest.raises(InvalidRangeError, match="Start IP must be less than or equal"):
            parse_range("10.0.0.5-10.0.0.1")

    def test_reversed_uses_numeric_comparison(self):
        """Should compare numerically, not lexically."""
        assert len(parse_range("10.0.0.9-10.0.0.10")) == 2

    def test_invalid_side(self):
        """Should reject a non-address on either side."""
        with pytest.raises(InvalidRangeError, match="Invalid IP format in range"):
            parse_range("10.0.0.1-router")

    def test_too_many_hyphens(self):
        """Should reject more than one hyphen."""
        with pytest.raises(InvalidRangeError, match="Invalid range format"):
            parse_range("10.0.0.1-10.0.0.2-10.0.0.3")


class TestBounds:
    """Tests for the two-argument form."""

    def test_start_and_end(self):
        """Should expand inclusive bounds."""
        assert parse_range("192.168.1.1", "192.168.1.3") == [
            "192.168.1.1",
            "192.168.1.2",
            "192.168.1.3",
        ]

    def test_reversed_bounds_fail(self):
        """Should reject start greater than end."""
        with pytest.raises(InvalidRangeError):
            parse_range("192.168.1.3", "192.168.1.1")

    def test_invalid_bound(self):
        """Should reject a malformed bound."""
        with pytest.raises(InvalidRangeError):
            parse_range("192.168.1.1", "192.168.1.300")

    @pytest.mark.parametrize("end", [3232235777, ["192.168.1.3"]])
    def test_non_string_end(self, end):
        """Should reject an end bound that is not text."""
        with pytest.raises(InvalidRangeError, match="Invalid IP format in range"):
            parse_range("192.168.1.1", end)


class TestCommaList:
    """Tests for comma separated lists."""

    def test_list_keeps_input_order(self):
        """Should keep addresses in the order given."""
        assert parse_range("192.168.1.21, 192.168.1.42, 192.168.3.69") == [
            "192.168.1.21",
            "192.168.1.42",
            "192.168.3.69",
        ]

    def test_one_bad_token_fails_whole_list(self):
        """Should not return a partial list."""
        with pytest.raises(InvalidRangeError, match="Invalid IP in list: 'not-an-ip'"):
            parse_range("1.1.1.1, not-an-ip")

    def test_duplicates_removed(self):
        """Should drop repeated addresses, first occurrence wins."""
        assert parse_range("10.0.0.2, 10.0.0.1, 10.0.0.2") == ["10.0.0.2", "10.0.0.1"]

    def test_empty_tokens_ignored(self):
        """Should skip empty items such as a trailing comma."""
        assert parse_range("10.0.0.1,") == ["10.0.0.1"]

    def test_list_takes_precedence_over_cidr(self):
        """A CIDR token inside a list is an invalid list item."""
        with pytest.raises(InvalidRangeError, match="Invalid IP in list"):
            parse_range("10.0.0.1, 10.0.0.0/30")

    def test_only_commas_is_empty(self):
        """Should fail when the list expands to nothing."""
        with pytest.raises(InvalidRangeError, match="No valid IPs found"):
            parse_range(" , ,")


class TestSingleAndInvalid:
    """Tests for single addresses and garbage input."""

    def test_single_address(self):
        """Should return a one element list."""
        assert parse_range("  8.8.8.8 ") == ["8.8.8.8"]

    @pytest.mark.parametrize("expression", [None, "", "   "])
    def test_empty_input(self, expression):
        """Should reject missing input."""
        with pytest.raises(InvalidRangeError, match="No IP range provided"):
            parse_range(expression)

    @pytest.mark.parametrize("expression", [12345, ["10.0.0.1"], {"range": "10.0.0.1"}])
    def test_non_string_input(self, expression):
        """Should reject input that is not text instead of crashing."""
        with pytest.raises(InvalidRangeError, match="No IP range provided"):
            parse_range(expression)

    @pytest.mark.parametrize("expression", ["hello", "256.1.1.1", "1.2.3", "010.0.0.1"])
    def test_garbage(self, expression):
        """Should reject anything that is not a known form."""
        with pytest.raises(InvalidRangeError, match="Invalid IP format"):
            parse_range(expression)

    def test_error_carries_format_help(self):
        """Error messages should include example formats."""
        with pytest.raises(InvalidRangeError) as exc_info:
            parse_range("nonsense")

        assert str(exc_info.value).endswith(FORMAT_HELP)
        assert "192.168.1.0/24" in str(exc_info.value)
        assert exc_info.value.reason == "Invalid IP format."

    def test_error_is_value_error(self):
        """InvalidRangeError should be catchable as ValueError."""
        with pytest.raises(ValueError):
            parse_range("nonsense")


class TestLimit:
    """Tests for the expansion size limit."""

    def test_within_limit(self):
        """Should allow expansions up to the limit."""
        assert len(parse_range("10.0.0.0/24", limit=256)) == 256

    def test_cidr_over_limit(self):
        """Should reject expansions over the limit."""
        with pytest.raises(InvalidRangeError, match="more than the limit of 255"):
            parse_range("10.0.0.0/24", limit=255)

    def test_range_over_limit(self):
        """Should apply the limit to hyphen ranges too."""
        with pytest.raises(InvalidRangeError):
            parse_range("10.0.0.0-10.255.255.255", limit=65536)

    def test_list_over_limit(self):
        """Should apply the limit to lists too."""
        with pytest.raises(InvalidRangeError):
            parse_range("10.0.0.1, 10.0.0.2, 10.0.0.3", limit=2)


class TestIsIPv4:
    """Tests for the address validator."""

    def test_valid(self):
        assert is_ipv4("192.168.0.1") is True

    def test_invalid(self):
        assert is_ipv4("192.168.0") is False
        assert is_ipv4("::1") is False
