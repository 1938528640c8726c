# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# vsphere_tpm_pytools - Python tools for retrieving host TPM attestation data from vSphere.

"""
vsphere_tpm_pytools - Python tools for vSphere host TPM attestation data

This package retrieves TPM PCR values and event logs from ESXi hosts, through
vCenter Server and through direct host logins, and prints them for inspection.
"""

# Run configuration
from .config import CredentialSettings, QueryConfig

# Endpoint handling
from .endpoint import (
    EndpointAddress,
    EndpointAddressError,
    LoginFailureReason,
    build_sdk_url,
    fetch_certificate_thumbprint,
    parse_endpoint_address,
    probe_endpoint,
)

# Inventory lookups
from .inventory import HostSearchScope, list_hosts, resolve_host

# TPM data structures
from .models import (
    Absent,
    AbsentReason,
    AttestationReport,
    HostCredentials,
    ManagedHostRef,
    ManagementCredentials,
    PcrDigest,
    Present,
    TpmEvent,
)

# Orchestration
from .orchestrator import HostOutcome, HostStage, QueryContext, RunState, RunSummary, run

# Report printing
from .printer import format_signed_bytes, print_events, print_pcr_digests

# TPM queries
from .reader import query_attestation_report, query_runtime_pcr, query_tpm_supported

# Sessions
from .session import LoginError, Session, SessionRole, login_host, login_management

# Logging utilities
from .tpm_logging import (
    get_logger,
    log_login_failure_reasons,
    log_query_step,
    log_remote_call,
    log_section_header,
    setup_cli_logging,
)

__version__ = "0.1.0"

__all__ = [
    # Data structures
    "AttestationReport",
    "TpmEvent",
    "PcrDigest",
    "ManagedHostRef",
    "ManagementCredentials",
    "HostCredentials",
    "Present",
    "Absent",
    "AbsentReason",
    # Configuration
    "CredentialSettings",
    "QueryConfig",
    # Endpoints and sessions
    "EndpointAddress",
    "EndpointAddressError",
    "LoginFailureReason",
    "LoginError",
    "Session",
    "SessionRole",
    "build_sdk_url",
    "fetch_certificate_thumbprint",
    "parse_endpoint_address",
    "probe_endpoint",
    "login_management",
    "login_host",
    # Inventory
    "HostSearchScope",
    "list_hosts",
    "resolve_host",
    # Queries
    "query_attestation_report",
    "query_runtime_pcr",
    "query_tpm_supported",
    # Printing
    "format_signed_bytes",
    "print_events",
    "print_pcr_digests",
    # Orchestration
    "HostOutcome",
    "HostStage",
    "QueryContext",
    "RunState",
    "RunSummary",
    "run",
    # Logging utilities
    "get_logger",
    "setup_cli_logging",
    "log_query_step",
    "log_remote_call",
    "log_login_failure_reasons",
    "log_section_header",
]
