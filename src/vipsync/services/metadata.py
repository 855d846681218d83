"""GCE metadata server client.

Enumerates the node's network interfaces and the load balancer IPs the
cloud forwards to each of them. Queries never raise on transient
failures: a failed query is logged and yields no data, and the next
reconciliation cycle simply asks again.
"""

from dataclasses import dataclass
from http.client import HTTPException
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from vipsync.core.config import MetadataConfig
from vipsync.core.context import ExecutionContext
from vipsync.core.exceptions import ValidationError
from vipsync.core.validation import validate_ipv4_address


NETWORK_INTERFACES_PATH = "network-interfaces/"


@dataclass
class MetadataResult:
    """Outcome of a single metadata query.

    status_code is 0 when no HTTP response was received at all.
    """
    path: str
    status_code: int
    body: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """Check if the server answered with a usable response."""
        return self.status_code != 0 and self.status_code < 400

    @property
    def lines(self) -> list[str]:
        """Whitespace-separated entries of a listing, empty on failure."""
        if not self.success:
            return []
        return self.body.split()


@dataclass(frozen=True)
class ForwardedVip:
    """A load balancer IP forwarded to one of this node's interfaces."""
    address: str
    interface: str
    mac: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.address} (NIC {self.interface}{self.mac or ''})"


class MetadataClient:
    """Read-only client for the instance metadata tree."""

    def __init__(self, ctx: ExecutionContext, config: MetadataConfig) -> None:
        """Initialize metadata client.

        Args:
            ctx: Execution context
            config: Metadata endpoint settings
        """
        self.ctx = ctx
        self.config = config

    def fetch(self, path: str) -> MetadataResult:
        """GET a metadata path relative to the instance root.

        Args:
            path: Path such as "network-interfaces/0/mac"

        Returns:
            MetadataResult; failures are logged, never raised
        """
        url = f"{self.config.base_url}{path}"
        request = Request(url, headers={self.config.flavor_header: self.config.flavor_value})
        self.ctx.console.debug(f"GET {url}")

        try:
            with urlopen(request, timeout=self.config.timeout) as response:
                result = MetadataResult(
                    path=path,
                    status_code=response.status,
                    body=response.read().decode("utf-8", errors="replace"),
                )
        except HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if e.fp is not None else ""
            result = MetadataResult(path=path, status_code=e.code, body=body, error=str(e.reason))
        except URLError as e:
            result = MetadataResult(path=path, status_code=0, error=str(e.reason))
        except OSError as e:
            # Socket timeouts during read surface as bare OSError
            result = MetadataResult(path=path, status_code=0, error=str(e))
        except HTTPException as e:
            # Malformed status line or truncated body
            result = MetadataResult(path=path, status_code=0, error=repr(e))

        if not result.success:
            self.ctx.console.error(
                f"Metadata query {path} failed ({result.status_code}): "
                f"{result.body.strip() or result.error or 'no response body'}"
            )

        return result

    def list_interfaces(self) -> list[str]:
        """List interface entries, e.g. ["0/", "1/"]."""
        return self.fetch(NETWORK_INTERFACES_PATH).lines

    def get_mac(self, interface: str) -> Optional[str]:
        """Get the MAC address of an interface entry."""
        result = self.fetch(f"{NETWORK_INTERFACES_PATH}{interface}mac")
        if not result.success:
            return None
        return result.body.strip() or None

    def list_forwarded_ip_levels(self, interface: str) -> list[str]:
        """List the forwarded-ip groupings under an interface."""
        return self.fetch(f"{NETWORK_INTERFACES_PATH}{interface}forwarded-ips/").lines

    def list_forwarded_ips(self, interface: str, level: str) -> list[str]:
        """List raw forwarded IP entries for one grouping."""
        return self.fetch(f"{NETWORK_INTERFACES_PATH}{interface}forwarded-ips/{level}").lines

    def list_forwarded_vips(self) -> list[ForwardedVip]:
        """Enumerate every VIP forwarded to any interface.

        Returns:
            One entry per (interface, address); partial if any query failed
        """
        vips: list[ForwardedVip] = []

        for interface in self.list_interfaces():
            mac = self.get_mac(interface)
            for level in self.list_forwarded_ip_levels(interface):
                for entry in self.list_forwarded_ips(interface, level):
                    try:
                        address = validate_ipv4_address(entry)
                    except ValidationError as e:
                        self.ctx.console.warn(f"Ignoring forwarded IP {entry!r}: {e.message}")
                        continue
                    vips.append(ForwardedVip(address=address, interface=interface, mac=mac))

        return vips

    def list_forwarded_addresses(self) -> set[str]:
        """Addresses of all VIPs currently forwarded to this node."""
        return {vip.address for vip in self.list_forwarded_vips()}
