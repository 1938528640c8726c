# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# TPM queries - Read attestation reports and cached PCR values from a HostSystem.

"""
TPM queries against a resolved HostSystem handle.

Each query returns ``Present`` with the normalized data, or ``Absent`` when the
host simply has nothing to report (no TPM, attestation not configured, runtime
information not populated). Remote faults are not handled here; they propagate
to the caller, which isolates them per query path.
"""

from typing import Any, List, Optional

from . import tpm_logging
from .models import (
    Absent,
    AbsentReason,
    AttestationReport,
    PcrDigest,
    Present,
    QueryResult,
    pcr_digests_from_vim,
)

logger = tpm_logging.get_logger(__name__)


def query_attestation_report(host: Any) -> QueryResult[AttestationReport]:
    """
    Invoke ``QueryTpmAttestationReport`` on a host through vCenter Server.

    Args:
        host: vim.HostSystem handle bound to a management session

    Returns:
        Present(AttestationReport), or Absent(TPM_UNSET) if the host returned no report
    """
    tpm_logging.log_remote_call(host._moId, "QueryTpmAttestationReport")
    report = host.QueryTpmAttestationReport()
    if report is None:
        tpm_logging.log_query_step("TPM attestation report", "ABSENT", AbsentReason.TPM_UNSET.value)
        return Absent(AbsentReason.TPM_UNSET)

    attestation = AttestationReport.from_vim(report)
    logger.debug(
        f"Attestation report has {len(attestation.events)} event(s) "
        f"and {len(attestation.pcr_values)} PCR value(s)"
    )
    return Present(attestation)


def query_runtime_pcr(host: Any) -> QueryResult[List[PcrDigest]]:
    """
    Read the PCR values cached in a host's runtime information.

    Args:
        host: vim.HostSystem handle, from a management or a host session

    Returns:
        Present(list of PcrDigest), Absent(RUNTIME_UNSET) if the host has no
        runtime information, or Absent(PCR_VALUES_EMPTY) if no PCR values are cached
    """
    tpm_logging.log_remote_call(host._moId, "runtime")
    runtime = host.runtime
    if runtime is None:
        tpm_logging.log_query_step("Host runtime information", "ABSENT", AbsentReason.RUNTIME_UNSET.value)
        return Absent(AbsentReason.RUNTIME_UNSET)

    logger.info("Retrieved host runtime information")
    pcr_values = getattr(runtime, "tpmPcrValues", None)
    if not pcr_values:
        tpm_logging.log_query_step("Runtime TPM PCR values", "ABSENT", AbsentReason.PCR_VALUES_EMPTY.value)
        return Absent(AbsentReason.PCR_VALUES_EMPTY)

    return Present(pcr_digests_from_vim(pcr_values))


def query_tpm_supported(host: Any) -> Optional[bool]:
    """Return the host's ``capability.tpmSupported`` flag, or None if capability is unset."""
    tpm_logging.log_remote_call(host._moId, "capability")
    capability = host.capability
    if capability is None:
        return None
    return capability.tpmSupported
