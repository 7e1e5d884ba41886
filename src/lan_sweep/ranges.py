"""
Range expression parsing.

Turns user input into the ordered, deduplicated list of IPv4 addresses
a scan will visit. Accepted forms, tried in this order:

- List:   192.168.1.21, 192.168.1.42, 192.168.3.69
- CIDR:   192.168.1.0/24
- Range:  192.168.1.1-192.168.2.255
- Bounds: start and end passed as two separate arguments
- Single: 192.168.1.1
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Optional

logger = logging.getLogger(__name__)


FORMAT_HELP = """
Acceptable formats:
- CIDR: 192.168.1.0/24
- Range: 192.168.1.1-192.168.2.255
- List: 192.168.1.21, 192.168.1.42, 192.168.3.69"""


class InvalidRangeError(ValueError):
    """Raised when a range expression cannot be turned into addresses."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"{reason}{FORMAT_HELP}")


def _to_int(address: str) -> Optional[int]:
    """Integer form of a dotted-quad IPv4 literal, None if it is not one."""
    try:
        return int(ipaddress.IPv4Address(address.strip()))
    except ValueError:
        return None


def is_ipv4(address: str) -> bool:
    return _to_int(address) is not None


def _expand(start: int, end: int, limit: Optional[int]) -> list[str]:
    count = end - start + 1
    if limit is not None and count > limit:
        raise InvalidRangeError(
            f"Range contains {count} addresses, more than the limit of {limit}."
        )
    return [str(ipaddress.IPv4Address(i)) for i in range(start, end + 1)]


def _parse_bounds(start_ip: str, end_ip: str, limit: Optional[int]) -> list[str]:
    start = _to_int(start_ip)
    end = _to_int(end_ip)
    if start is None or end is None:
        raise InvalidRangeError("Invalid IP format in range.")
    if start > end:
        raise InvalidRangeError("Start IP must be less than or equal to End IP.")
    return _expand(start, end, limit)


def _parse_list(text: str, limit: Optional[int]) -> list[str]:
    addresses: dict[str, None] = {}
    for token in (part.strip() for part in text.split(",")):
        if not token:
            continue
        if not is_ipv4(token):
            raise InvalidRangeError(f"Invalid IP in list: '{token}'.")
        addresses[str(ipaddress.IPv4Address(token))] = None

    if limit is not None and len(addresses) > limit:
        raise InvalidRangeError(
            f"List contains {len(addresses)} addresses, more than the limit of {limit}."
        )
    return list(addresses)


def _parse_cidr(text: str, limit: Optional[int]) -> list[str]:
    try:
        network = ipaddress.IPv4Network(text, strict=False)
    except ValueError:
        raise InvalidRangeError("Invalid CIDR format.") from None
    return _expand(
        int(network.network_address),
        int(network.broadcast_address),
        limit,
    )


def parse_range(
    expression: Optional[str],
    end: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[str]:
    """
    Expand a range expression into a list of IPv4 addresses.

    Args:
        expression: Range expression, or the start address when ``end``
            is given
        end: End address for the two-argument form
        limit: Maximum number of addresses the expansion may produce

    Returns:
        Non-empty list of dotted-quad addresses, ascending for CIDR and
        ranges, in input order for lists

    Raises:
        InvalidRangeError: If the input is empty, malformed, reversed or
            larger than ``limit``
    """
    if not isinstance(expression, str) or not expression.strip():
        raise InvalidRangeError("No IP range provided.")
    if end is not None and not isinstance(end, str):
        raise InvalidRangeError("Invalid IP format in range.")

    text = expression.strip()

    if end is not None:
        addresses = _parse_bounds(text, end, limit)
    elif "," in text:
        addresses = _parse_list(text, limit)
    elif "/" in text:
        addresses = _parse_cidr(text, limit)
    elif "-" in text:
        parts = text.split("-")
        if len(parts) != 2:
            raise InvalidRangeError("Invalid range format.")
        addresses = _parse_bounds(parts[0], parts[1], limit)
    elif is_ipv4(text):
        addresses = [str(ipaddress.IPv4Address(text))]
    else:
        raise InvalidRangeError("Invalid IP format.")

    if not addresses:
        raise InvalidRangeError("No valid IPs found.")

    logger.debug(f"Expanded '{text}' to {len(addresses)} addresses")
    return addresses
