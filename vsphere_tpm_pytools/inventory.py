# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Inventory lookups - Enumerate and resolve HostSystem managed objects.

import enum
import http.client
from typing import Any, List, Optional

from pyVmomi import vim, vmodl

from . import tpm_logging
from .models import ManagedHostRef
from .session import Session

logger = tpm_logging.get_logger(__name__)

HOST_CONNECTED = "connected"


class HostSearchScope(enum.Enum):
    """Where a host handle is resolved from"""

    # By reference or name in the vCenter Server inventory
    MANAGEMENT = "management"
    # The single host an ESXi session represents
    HOST_SELF = "host_self"


def _find_host_systems(session: Session) -> List[Any]:
    """Return every HostSystem below the session's root folder."""
    content = session.content
    view = content.viewManager.CreateContainerView(
        content.rootFolder, [vim.HostSystem], True
    )
    try:
        return list(view.view)
    finally:
        view.DestroyView()


def list_hosts(session: Session) -> List[ManagedHostRef]:
    """
    Enumerate all hosts known to a session's inventory.

    Args:
        session: Management (or host) session

    Returns:
        List of ManagedHostRef; empty if none are configured or the search failed
    """
    tpm_logging.log_remote_call(session.url, "CreateContainerView", "HostSystem")
    try:
        hosts = [ManagedHostRef.from_managed_object(h) for h in _find_host_systems(session)]
    except vmodl.MethodFault as e:
        logger.error(f"Unable to retrieve hosts from inventory of {session.address}: {e.msg}")
        logger.debug("Inventory search failure", exc_info=True)
        return []
    except (OSError, http.client.HTTPException) as e:
        logger.error(f"Connection error while retrieving hosts from inventory of {session.address}: {e}")
        return []

    logger.debug(f"Found {len(hosts)} host(s) in inventory of {session.address}")
    return hosts


def check_connection_state(host: Any, host_name: str) -> bool:
    """
    Log whether a host is in the connected state.

    A host that is not connected, or has no runtime information, is only
    reported; its TPM data is queried anyway.

    Returns:
        bool: True if the host reports ``connected``
    """
    runtime = host.runtime
    if runtime is None:
        logger.warning(f"ESXi host: {host_name} has no runtime information, connection state unknown")
        return False
    state = runtime.connectionState
    if state == HOST_CONNECTED:
        logger.info(f"Found ESXi host: {host_name} in connected state")
        return True
    logger.warning(f"ESXi host: {host_name} is not in connected state (state: {state})")
    return False


def resolve_host(
    session: Session,
    host_ref: Optional[ManagedHostRef] = None,
    host_name: Optional[str] = None,
    scope: HostSearchScope = HostSearchScope.MANAGEMENT,
) -> Optional[Any]:
    """
    Resolve a live HostSystem handle.

    With ``HostSearchScope.MANAGEMENT`` the host is bound by ``host_ref`` or,
    failing that, searched for by ``host_name``. With ``HostSearchScope.HOST_SELF``
    the first HostSystem in the session's inventory is used; an ESXi endpoint's
    inventory only ever contains the host itself.

    Args:
        session: Session to resolve against
        host_ref: Reference obtained from list_hosts
        host_name: Host name to search for, also used in log messages
        scope: Resolution mode

    Returns:
        vim.HostSystem handle, or None if not found or the lookup failed
    """
    display_name = host_name or (host_ref.name if host_ref else str(session.address))

    try:
        if scope is HostSearchScope.HOST_SELF:
            candidates = _find_host_systems(session)
            host = candidates[0] if candidates else None
        elif host_ref is not None:
            host = vim.HostSystem(host_ref.moid, session.stub)
        elif host_name is not None:
            host = next(
                (h for h in _find_host_systems(session) if h.name == host_name), None
            )
        else:
            raise ValueError("host_ref or host_name is required for management scope")

        if host is None:
            logger.error(f"Unable to retrieve host {display_name} HostSystem object from inventory")
            return None

        check_connection_state(host, display_name)
        return host
    except vmodl.MethodFault as e:
        logger.error(
            f"Caught fault while retrieving host {display_name} HostSystem object from inventory: {e.msg}"
        )
        logger.debug("Host resolution failure", exc_info=True)
        return None
    except (OSError, http.client.HTTPException) as e:
        logger.error(f"Connection error while retrieving host {display_name} HostSystem object: {e}")
        return None
