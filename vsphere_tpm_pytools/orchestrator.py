# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Query orchestration - Drive the per-host TPM query paths with failure isolation.

"""
Per-host TPM query orchestration.

For every host in the vCenter Server inventory three independent query paths
run in sequence:

1. ``QueryTpmAttestationReport`` through vCenter Server
2. cached PCR values from the host's runtime information on vCenter Server
3. cached PCR values from the host's runtime information, logging into the
   ESXi host directly

A failure in one path is logged and the next path still runs; a failure for
one host never stops the remaining hosts. Results from the paths are printed
as separate sections and never merged.
"""

import enum
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, TextIO

from . import tpm_logging
from .config import QueryConfig
from .inventory import HostSearchScope, list_hosts, resolve_host
from .models import ManagedHostRef, Present
from .printer import print_events, print_pcr_digests
from .reader import query_attestation_report, query_runtime_pcr, query_tpm_supported
from .session import LoginError, Session, login_host, login_management

logger = tpm_logging.get_logger(__name__)

HOST_BANNER_RULE = "*" * 78


class HostStage(enum.Enum):
    """Progress of one host through the query paths"""

    START = "start"
    VC_QUERIED = "attestation report via vCenter Server"
    RUNTIME_QUERIED = "runtime PCR values via vCenter Server"
    ESXI_QUERIED = "runtime PCR values via ESXi"
    DONE = "done"


class RunState(enum.Enum):
    """Progress of the whole run"""

    NOT_LOGGED_IN = "not logged in"
    LOGGED_IN = "logged in"
    ENUMERATING = "enumerating hosts"
    PER_HOST_LOOP = "querying hosts"
    FINISHED = "finished"
    FAILED = "failed"


@dataclass
class HostOutcome:
    """What happened while querying one host."""

    host: ManagedHostRef
    stage: HostStage = HostStage.START
    failed_stages: List[HostStage] = field(default_factory=list)
    host_session_created: bool = False

    @property
    def succeeded(self) -> bool:
        return self.stage is HostStage.DONE and not self.failed_stages


@dataclass
class RunSummary:
    """Result of a run: final state, per-host outcomes and any login error."""

    state: RunState = RunState.NOT_LOGGED_IN
    hosts: List[HostOutcome] = field(default_factory=list)
    login_error: Optional[LoginError] = None

    @property
    def host_sessions_created(self) -> int:
        return sum(1 for outcome in self.hosts if outcome.host_session_created)


@dataclass
class QueryContext:
    """
    Explicit state shared by the query paths of a run.

    The management session lives for the whole run; the current host fields
    are replaced for every host.
    """

    config: QueryConfig
    stream: TextIO
    management_session: Optional[Session] = None
    current_host: Optional[ManagedHostRef] = None
    current_handle: Optional[Any] = None

    def begin_host(self, host: ManagedHostRef) -> None:
        self.current_host = host
        self.current_handle = None

    def emit(self, line: str = "") -> None:
        print(line, file=self.stream)


def _run_stage(
    ctx: QueryContext,
    outcome: HostOutcome,
    stage: HostStage,
    query: Callable[[QueryContext, HostOutcome], None],
) -> None:
    """Run one query path; a failure is logged and recorded, then the host moves on."""
    try:
        query(ctx, outcome)
    except Exception as e:
        outcome.failed_stages.append(stage)
        logger.error(
            f"Caught exception while querying {stage.value} for host {outcome.host.name}: {e}"
        )
        logger.debug("Query path failure", exc_info=True)
    outcome.stage = stage


def query_via_management(ctx: QueryContext, outcome: HostOutcome) -> None:
    """Path 1: QueryTpmAttestationReport through vCenter Server."""
    ctx.emit("\n---- QueryTPM via VC ...")
    ctx.current_handle = resolve_host(
        ctx.management_session, host_ref=outcome.host, scope=HostSearchScope.MANAGEMENT
    )
    if ctx.current_handle is None:
        raise LookupError(f"host {outcome.host.name} not found in vCenter Server inventory")

    result = query_attestation_report(ctx.current_handle)
    if isinstance(result, Present):
        print_events(result.value.events, ctx.stream)
        print_pcr_digests(result.value.pcr_values, ctx.stream)
    else:
        logger.warning(f"[ALERT] {result.reason.value} for host {outcome.host.name}")


def _print_runtime_pcr(ctx: QueryContext, host: Any, host_name: str) -> None:
    ctx.emit("Querying TPM PCR information ...")
    result = query_runtime_pcr(host)
    if isinstance(result, Present):
        print_pcr_digests(result.value, ctx.stream)
    else:
        logger.warning(f"{result.reason.value} for host {host_name}")


def query_runtime_via_management(ctx: QueryContext, outcome: HostOutcome) -> None:
    """Path 2: cached runtime PCR values through vCenter Server."""
    ctx.emit("\n---- Query TPM information from HostRuntimeInfo on VC ...")
    if ctx.current_handle is None:
        logger.error(f"No HostSystem object for host {outcome.host.name}, skipping runtime query")
        return
    _print_runtime_pcr(ctx, ctx.current_handle, outcome.host.name)


def query_via_host(ctx: QueryContext, outcome: HostOutcome) -> None:
    """Path 3: log into the ESXi host directly and read its cached runtime PCR values."""
    ctx.emit("\n---- Query TPM support & PCR information via ESXi ...")
    credentials = ctx.config.host_credentials
    if credentials is None:
        tpm_logging.log_query_step(
            f"Direct ESXi query of {outcome.host.name}", "SKIPPED", "no ESXi credentials"
        )
        return

    try:
        host_session = login_host(
            outcome.host.name,
            credentials.username,
            credentials.password,
            probe=ctx.config.probe,
            probe_timeout=ctx.config.probe_timeout,
        )
    except LoginError as e:
        logger.warning(f"Failed to login to host {outcome.host.name} through host agent API: {e}")
        return

    outcome.host_session_created = True
    try:
        host = resolve_host(
            host_session, host_name=outcome.host.name, scope=HostSearchScope.HOST_SELF
        )
        if host is None:
            logger.error(f"Failed to retrieve HostSystem object of {outcome.host.name} through host agent API")
            return
        ctx.emit(f"ESXi host TPM Support: {query_tpm_supported(host)}")
        _print_runtime_pcr(ctx, host, outcome.host.name)
    finally:
        host_session.logout()


def process_host(ctx: QueryContext, host: ManagedHostRef) -> HostOutcome:
    """
    Run the three query paths for one host.

    Args:
        ctx: Run context holding the management session
        host: Host to query

    Returns:
        HostOutcome: Final stage and the stages that failed
    """
    ctx.begin_host(host)
    outcome = HostOutcome(host=host)

    ctx.emit("\n" + HOST_BANNER_RULE)
    ctx.emit(f"\t\t\tHost : {host.name}")
    ctx.emit(HOST_BANNER_RULE)

    _run_stage(ctx, outcome, HostStage.VC_QUERIED, query_via_management)
    _run_stage(ctx, outcome, HostStage.RUNTIME_QUERIED, query_runtime_via_management)
    _run_stage(ctx, outcome, HostStage.ESXI_QUERIED, query_via_host)
    outcome.stage = HostStage.DONE

    if outcome.failed_stages:
        failed = ", ".join(s.value for s in outcome.failed_stages)
        tpm_logging.log_query_step(f"Host {host.name}", "FAILED", f"failed paths: {failed}")
    else:
        tpm_logging.log_query_step(f"Host {host.name}", "OK")
    return outcome


def run(config: QueryConfig, stream: Optional[TextIO] = None) -> RunSummary:
    """
    Log into vCenter Server and query TPM information for every host.

    Args:
        config: Run configuration
        stream: Output stream for the report (default: sys.stdout)

    Returns:
        RunSummary: Final run state and per-host outcomes
    """
    ctx = QueryContext(config=config, stream=stream or sys.stdout)
    summary = RunSummary()

    if config.management is None:
        logger.error("vCenter Server address and credentials are required")
        summary.state = RunState.FAILED
        return summary

    if config.host_credentials is None:
        logger.warning("Please specify ESXi host credentials for logging into ESXi hosts")

    management = config.management
    try:
        ctx.management_session = login_management(
            management.address,
            management.username,
            management.password,
            probe=config.probe,
            probe_timeout=config.probe_timeout,
        )
    except LoginError as e:
        logger.error(f"Caught an error while logging into vSphere {management.address}: {e}")
        tpm_logging.log_login_failure_reasons(e.reason.value)
        summary.login_error = e
        summary.state = RunState.FAILED
        return summary

    summary.state = RunState.LOGGED_IN
    try:
        summary.state = RunState.ENUMERATING
        tpm_logging.log_section_header("Host enumeration")
        logger.info("Retrieving all hosts from VC ...")
        hosts = list_hosts(ctx.management_session)
        if not hosts:
            logger.error("Could not find any hosts in inventory")
            summary.state = RunState.FINISHED
            return summary

        summary.state = RunState.PER_HOST_LOOP
        for host in hosts:
            summary.hosts.append(process_host(ctx, host))
        summary.state = RunState.FINISHED
    finally:
        ctx.management_session.logout()

    return summary
