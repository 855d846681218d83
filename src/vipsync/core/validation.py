"""Input validation utilities.

Provides validation for:
- IPv4 addresses (VIPs reported by the metadata server)
- CIDR ranges (health-check source ranges)
- URLs (metadata endpoint)
- Paths (with traversal prevention)

All validators return the validated value or raise ValidationError.
"""

import ipaddress
from typing import Optional
from urllib.parse import urlparse

from vipsync.core.exceptions import ValidationError


def validate_ipv4_address(value: str) -> str:
    """Validate a single IPv4 address, accepting a /32 suffix.

    The metadata server reports forwarded IPs either as bare addresses or
    as host CIDRs ("10.0.0.1/32"). Both normalize to the bare address.

    Args:
        value: Address string to validate

    Returns:
        The bare address

    Raises:
        ValidationError: If value is not a single IPv4 host
    """
    value = value.strip()

    try:
        network = ipaddress.ip_network(value, strict=True)
    except ValueError as e:
        raise ValidationError(
            f"Invalid IP address: {value}",
            hint="Use format like 10.0.0.1 or 10.0.0.1/32",
            details=[str(e)],
        ) from e

    if network.version != 4:
        raise ValidationError(
            f"Only IPv4 addresses are supported: {value}",
        )

    if network.num_addresses != 1:
        raise ValidationError(
            f"Expected a single address, got range: {value}",
            hint="Forwarded IPs must be /32 hosts",
        )

    return str(network.network_address)


def validate_cidr(value: str) -> str:
    """Validate CIDR notation for network ranges.

    Args:
        value: CIDR string to validate (e.g., "35.191.0.0/16")

    Returns:
        The validated CIDR string

    Raises:
        ValidationError: If validation fails
    """
    value = value.strip()

    try:
        network = ipaddress.ip_network(value, strict=False)
    except ValueError as e:
        raise ValidationError(
            f"Invalid CIDR notation: {value}",
            hint="Use format like 130.211.0.0/22",
            details=[str(e)],
        ) from e

    if network.version != 4:
        raise ValidationError(f"Only IPv4 ranges are supported: {value}")

    # Dropping forwarded traffic from everywhere would blackhole the node
    if network.prefixlen == 0:
        raise ValidationError(
            f"'{value}' matches ANY source address",
            hint="Use the health checker's documented source ranges",
        )

    return value


def validate_url(
    value: str,
    allowed_schemes: Optional[frozenset[str]] = None,
) -> str:
    """Validate a URL.

    Args:
        value: URL to validate
        allowed_schemes: Set of allowed schemes (default: http, https)

    Returns:
        The validated URL

    Raises:
        ValidationError: If validation fails
    """
    value = value.strip()

    if not allowed_schemes:
        allowed_schemes = frozenset({"http", "https"})

    parsed = urlparse(value)

    if not parsed.scheme:
        raise ValidationError(
            f"URL must include a scheme: {value}",
            hint=f"Use http://{value}",
        )

    if parsed.scheme.lower() not in allowed_schemes:
        raise ValidationError(
            f"URL scheme '{parsed.scheme}' not allowed",
            hint=f"Use one of: {', '.join(sorted(allowed_schemes))}",
        )

    if not parsed.netloc:
        raise ValidationError(
            f"URL must include a host: {value}",
            hint="Provide a complete URL like http://metadata.google.internal/",
        )

    return value


def validate_path(
    value: str,
    must_be_absolute: bool = True,
) -> str:
    """Validate a file path with traversal prevention.

    Args:
        value: Path to validate
        must_be_absolute: Require absolute path

    Returns:
        The validated path

    Raises:
        ValidationError: If validation fails
    """
    dangerous_patterns = [
        "..",           # Parent directory traversal
        "\n",           # Newline injection
        "\r",           # Carriage return
        "\x00",         # Null byte
    ]

    for pattern in dangerous_patterns:
        if pattern in value:
            raise ValidationError(
                f"Path contains dangerous pattern: {repr(pattern)}",
                hint="Use a simple path without special characters",
            )

    if must_be_absolute and not value.startswith("/"):
        raise ValidationError(
            f"Path must be absolute: {value}",
            hint=f"Use /{value}",
        )

    return value
