# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Endpoint utilities - Address parsing, reachability probing and certificate thumbprints.

import enum
import ssl
from dataclasses import dataclass
from typing import Optional, Tuple

import requests
import urllib3
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import tpm_logging

logger = tpm_logging.get_logger(__name__)

DEFAULT_HTTPS_PORT = 443
SDK_PATH = "/sdk"
# Served unauthenticated by both vCenter Server and ESXi
SERVICE_VERSIONS_PATH = "/sdk/vimServiceVersions.xml"

# Certificates are never validated against a CA, silence the per-request warning
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


class LoginFailureReason(enum.Enum):
    """Classified causes of a failed login"""

    INVALID_CREDENTIALS = "invalid username/password credentials"
    UNREACHABLE = "server not reachable"
    MALFORMED_ADDRESS = "malformed server address"
    TLS_FAILURE = "TLS negotiation failed"
    CUSTOM_PORT = "nothing listening on the default port, server may use a custom port"
    UNKNOWN = "unknown failure"


class EndpointAddressError(ValueError):
    """Raised when an endpoint address cannot be parsed."""

    pass


@dataclass(frozen=True)
class EndpointAddress:
    """A parsed ``host[:port]`` endpoint address."""

    host: str
    port: int = DEFAULT_HTTPS_PORT
    explicit_port: bool = False

    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.explicit_port:
            return f"{host}:{self.port}"
        return host

    def __str__(self) -> str:
        return self.netloc


def parse_endpoint_address(address: str) -> EndpointAddress:
    """
    Parse a vSphere endpoint address of the form ``host``, ``host:port``,
    ``[ipv6]`` or ``[ipv6]:port``.

    Args:
        address: Address as supplied on the command line or found in inventory

    Returns:
        EndpointAddress: Parsed address

    Raises:
        EndpointAddressError: If the address is empty, has a bad port, or
            includes a scheme or path
    """
    if address is None or not address.strip():
        raise EndpointAddressError("Endpoint address is empty")
    address = address.strip()
    if "/" in address:
        raise EndpointAddressError(
            f"Invalid endpoint address '{address}': expected host[:port] without scheme or path"
        )

    port_str = None
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep:
            raise EndpointAddressError(f"Invalid endpoint address '{address}': unclosed '['")
        if rest:
            if not rest.startswith(":"):
                raise EndpointAddressError(f"Invalid endpoint address '{address}'")
            port_str = rest[1:]
    elif address.count(":") == 1:
        host, port_str = address.split(":")
    else:
        # Bare hostname, IPv4, or unbracketed IPv6
        host = address

    if not host:
        raise EndpointAddressError(f"Invalid endpoint address '{address}': missing host")

    if port_str is None:
        return EndpointAddress(host=host)

    try:
        port = int(port_str)
    except ValueError:
        raise EndpointAddressError(f"Invalid port '{port_str}' in address '{address}'")
    if not 0 < port < 65536:
        raise EndpointAddressError(f"Port {port} out of range in address '{address}'")
    return EndpointAddress(host=host, port=port, explicit_port=True)


def build_sdk_url(address: EndpointAddress) -> str:
    """Return the SOAP endpoint URL, ``https://<address>/sdk``."""
    return f"https://{address.netloc}{SDK_PATH}"


def create_probe_session(
    retries: int = 2,
    backoff_factor: float = 0.2,
    status_forcelist: Tuple[int, ...] = (502, 503, 504),
    timeout: float = 10,
) -> requests.Session:
    """
    Create a requests session for probing vSphere endpoints.

    vSphere endpoints usually present self-signed certificates, so certificate
    verification is disabled; the server thumbprint is logged instead.

    Args:
        retries: Number of retries for failed requests
        backoff_factor: Backoff factor for retries
        status_forcelist: HTTP status codes to retry on
        timeout: Default timeout for requests

    Returns:
        requests.Session: Configured session object
    """
    session = requests.Session()
    session.verify = False

    retry_strategy = Retry(
        total=retries,
        connect=retries,
        read=0,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.timeout = timeout

    session.headers.update({"User-Agent": "vSphere-TPM-PyTools/1.0"})
    return session


def _is_connection_refused(exc: BaseException) -> bool:
    """Walk the exception chain looking for a refused TCP connection."""
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, ConnectionRefusedError):
            return True
        if "Connection refused" in str(current):
            return True
        pending.extend([current.__cause__, current.__context__])
        # urllib3.MaxRetryError keeps the underlying error in .reason
        nested = [getattr(current, "reason", None), *getattr(current, "args", ())]
        pending.extend(n for n in nested if isinstance(n, BaseException))
    return False


def classify_transport_error(exc: BaseException, address: EndpointAddress) -> LoginFailureReason:
    """
    Map a transport-level exception to a LoginFailureReason.

    Args:
        exc: Exception raised while talking to the endpoint
        address: Endpoint the exception relates to

    Returns:
        LoginFailureReason: Classified reason
    """
    if isinstance(exc, EndpointAddressError):
        return LoginFailureReason.MALFORMED_ADDRESS
    if isinstance(exc, (requests.exceptions.SSLError, ssl.SSLError)):
        return LoginFailureReason.TLS_FAILURE
    if isinstance(exc, (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema)):
        return LoginFailureReason.MALFORMED_ADDRESS
    if _is_connection_refused(exc):
        if address.explicit_port:
            return LoginFailureReason.UNREACHABLE
        return LoginFailureReason.CUSTOM_PORT
    if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout, OSError)):
        return LoginFailureReason.UNREACHABLE
    return LoginFailureReason.UNKNOWN


def probe_endpoint(
    address: EndpointAddress, timeout: float = 10
) -> Optional[LoginFailureReason]:
    """
    Check that a vSphere endpoint answers HTTPS before attempting a SOAP login.

    Args:
        address: Endpoint to probe
        timeout: Connect/read timeout in seconds

    Returns:
        None if the endpoint answered, otherwise the classified failure reason
    """
    url = f"https://{address.netloc}{SERVICE_VERSIONS_PATH}"
    tpm_logging.log_remote_call(url, "GET")

    session = create_probe_session(timeout=timeout)
    try:
        response = session.get(url, timeout=session.timeout)
    except requests.exceptions.RequestException as e:
        reason = classify_transport_error(e, address)
        logger.debug(f"Probe of {url} failed: {e}")
        return reason
    finally:
        session.close()

    tpm_logging.log_remote_call(url, "GET", f"Status: {response.status_code}")
    if response.status_code != 200:
        # Still an HTTPS server; let the SOAP login decide
        logger.warning(
            f"Endpoint {address} answered {response.status_code} for {SERVICE_VERSIONS_PATH}, "
            "it may not be a vSphere endpoint"
        )
    return None


def fetch_certificate_thumbprint(
    address: EndpointAddress, timeout: float = 10
) -> Optional[str]:
    """
    Fetch the endpoint's TLS certificate without validating it and return its
    SHA-1 thumbprint in the colon-separated form vSphere displays.

    Args:
        address: Endpoint to connect to
        timeout: Socket timeout in seconds

    Returns:
        Thumbprint string, or None if the certificate could not be retrieved
    """
    try:
        pem = ssl.get_server_certificate((address.host, address.port), timeout=timeout)
        cert = x509.load_pem_x509_certificate(pem.encode())
    except (OSError, ValueError) as e:
        logger.debug(f"Unable to read certificate from {address}: {e}")
        return None
    return format_thumbprint(cert.fingerprint(hashes.SHA1()))


def format_thumbprint(digest: bytes) -> str:
    """Format a certificate fingerprint as ``AA:BB:...``."""
    return ":".join(f"{b:02X}" for b in digest)
