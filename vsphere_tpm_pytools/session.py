# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Session management - Authenticated vSphere API sessions for vCenter Server and ESXi.

"""
Session handling for vCenter Server and ESXi endpoints.

A ``Session`` wraps a pyVmomi ``ServiceInstance``. Logins never validate the
server certificate, since vSphere endpoints commonly present self-signed
certificates. Every failure during login is converted to a ``LoginError``
carrying a ``LoginFailureReason``.
"""

import enum
import http.client
import ssl
from dataclasses import dataclass
from typing import Any, Optional

from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim, vmodl

from . import tpm_logging
from .endpoint import (
    EndpointAddress,
    EndpointAddressError,
    LoginFailureReason,
    build_sdk_url,
    classify_transport_error,
    fetch_certificate_thumbprint,
    parse_endpoint_address,
    probe_endpoint,
)

logger = tpm_logging.get_logger(__name__)


class SessionRole(enum.Enum):
    """Which kind of endpoint a session is logged into"""

    MANAGEMENT = "vCenter Server"
    HOST = "ESXi host"


class LoginError(Exception):
    """Exception raised when a login to a vSphere endpoint fails."""

    def __init__(self, address: str, reason: LoginFailureReason, message: str = ""):
        self.address = address
        self.reason = reason
        detail = f": {message}" if message else ""
        super().__init__(f"Login to {address} failed ({reason.value}){detail}")


@dataclass
class Session:
    """
    An authenticated session against a single vSphere endpoint.

    Attributes:
        service_instance: pyVmomi ServiceInstance returned by SmartConnect
        address: Endpoint the session is connected to
        role: Management (vCenter Server) or host (ESXi) session
        thumbprint: SHA-1 thumbprint of the server certificate, if fetched
    """

    service_instance: Any
    address: EndpointAddress
    role: SessionRole
    thumbprint: Optional[str] = None

    @property
    def url(self) -> str:
        return build_sdk_url(self.address)

    @property
    def content(self) -> Any:
        """The endpoint's ServiceContent (root folder, view manager, ...)."""
        return self.service_instance.RetrieveContent()

    @property
    def stub(self) -> Any:
        """SOAP stub used to bind managed object references to this session."""
        return self.service_instance._stub

    def logout(self) -> None:
        """Disconnect from the endpoint; failures are logged, never raised."""
        try:
            Disconnect(self.service_instance)
            logger.debug(f"Logged out of {self.role.value} {self.address}")
        except (vmodl.MethodFault, OSError, http.client.HTTPException) as e:
            logger.warning(f"Failed to log out of {self.role.value} {self.address}: {e}")


def login(
    address: str,
    username: str,
    password: str,
    role: SessionRole,
    probe: bool = True,
    probe_timeout: float = 10,
    record_thumbprint: bool = False,
) -> Session:
    """
    Log into a vCenter Server or ESXi SOAP endpoint.

    Args:
        address: Endpoint address, ``host`` or ``host:port``
        username: Login user name
        password: Login password
        role: Kind of endpoint being logged into
        probe: Probe the endpoint over HTTPS before the SOAP login
        probe_timeout: Timeout for the probe and thumbprint fetch, in seconds
        record_thumbprint: Fetch and log the server certificate thumbprint

    Returns:
        Session: Authenticated session

    Raises:
        LoginError: On any failure, with the classified reason
    """
    try:
        endpoint = parse_endpoint_address(address)
    except EndpointAddressError as e:
        raise LoginError(address, LoginFailureReason.MALFORMED_ADDRESS, str(e))

    url = build_sdk_url(endpoint)
    logger.info(f"Logging into {role.value}: {url}")

    if probe:
        reason = probe_endpoint(endpoint, timeout=probe_timeout)
        if reason is not None:
            raise LoginError(address, reason)

    tpm_logging.log_remote_call(url, "SmartConnect", f"user={username}")
    try:
        service_instance = SmartConnect(
            host=endpoint.host,
            port=endpoint.port,
            user=username,
            pwd=password,
            disableSslCertValidation=True,
        )
    except vim.fault.InvalidLogin as e:
        raise LoginError(address, LoginFailureReason.INVALID_CREDENTIALS, e.msg)
    except vmodl.MethodFault as e:
        raise LoginError(address, LoginFailureReason.UNKNOWN, e.msg)
    except (ssl.SSLError, OSError, http.client.HTTPException) as e:
        raise LoginError(address, classify_transport_error(e, endpoint), str(e))
    except Exception as e:
        # SmartConnect raises plain Exception when no supported API version is found
        logger.debug("Unexpected login failure", exc_info=True)
        raise LoginError(address, LoginFailureReason.UNKNOWN, str(e))

    if service_instance is None:
        raise LoginError(address, LoginFailureReason.UNKNOWN, "no service instance returned")

    session = Session(service_instance=service_instance, address=endpoint, role=role)
    logger.info(f"Successfully logged into {role.value}: {endpoint}")

    if record_thumbprint:
        session.thumbprint = fetch_certificate_thumbprint(endpoint, timeout=probe_timeout)
        if session.thumbprint:
            logger.info(f"Trusted unverified certificate of {endpoint} with SHA-1 thumbprint {session.thumbprint}")

    return session


def login_management(
    address: str,
    username: str,
    password: str,
    probe: bool = True,
    probe_timeout: float = 10,
) -> Session:
    """
    Log into the vCenter Server management endpoint.

    Raises:
        LoginError: On any failure, with the classified reason
    """
    return login(
        address,
        username,
        password,
        SessionRole.MANAGEMENT,
        probe=probe,
        probe_timeout=probe_timeout,
        record_thumbprint=True,
    )


def login_host(
    address: str,
    username: str,
    password: str,
    probe: bool = True,
    probe_timeout: float = 10,
) -> Session:
    """
    Log directly into an ESXi host.

    Raises:
        LoginError: On any failure, with the classified reason
    """
    return login(
        address,
        username,
        password,
        SessionRole.HOST,
        probe=probe,
        probe_timeout=probe_timeout,
    )
