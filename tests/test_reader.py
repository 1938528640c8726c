# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT

from types import SimpleNamespace

import pytest
from pyVmomi import vmodl

from vsphere_tpm_pytools.models import Absent, AbsentReason, Present
from vsphere_tpm_pytools.reader import (
    query_attestation_report,
    query_runtime_pcr,
    query_tpm_supported,
)

from .conftest import FakeHost, make_digest


def test_attestation_report_present(sample_report):
    result = query_attestation_report(FakeHost("esx01", report=sample_report))

    assert isinstance(result, Present)
    assert [e.pcr_index for e in result.value.events] == [0, 7]
    assert result.value.pcr_values[0].digest_value == [0, 127, -128, -1]


def test_unset_attestation_report_is_absent(caplog):
    result = query_attestation_report(FakeHost("esx01", report=None))

    assert result == Absent(AbsentReason.TPM_UNSET)
    assert "unset" in caplog.text


def test_attestation_fault_propagates():
    host = FakeHost("esx01", report_error=vmodl.fault.NotSupported(msg="no TPM API"))
    with pytest.raises(vmodl.fault.NotSupported):
        query_attestation_report(host)


def test_runtime_pcr_present():
    host = FakeHost("esx01", runtime_pcrs=[make_digest(0, [1]), make_digest(1, [2])])
    result = query_runtime_pcr(host)

    assert isinstance(result, Present)
    assert [d.pcr_number for d in result.value] == [0, 1]


def test_runtime_missing_is_absent():
    result = query_runtime_pcr(FakeHost("esx01", runtime_missing=True))
    assert result == Absent(AbsentReason.RUNTIME_UNSET)


@pytest.mark.parametrize("pcrs", [None, []])
def test_runtime_without_pcr_values_is_absent(pcrs, caplog):
    result = query_runtime_pcr(FakeHost("esx01", runtime_pcrs=pcrs))
    assert result == Absent(AbsentReason.PCR_VALUES_EMPTY)
    assert "null or empty" in caplog.text


def test_query_tpm_supported():
    assert query_tpm_supported(FakeHost("esx01", tpm_supported=False)) is False
    host = FakeHost("esx01")
    host.capability = None
    assert query_tpm_supported(host) is None


def test_runtime_without_tpm_field():
    host = FakeHost("esx01")
    host.runtime = SimpleNamespace(connectionState="connected")
    assert query_runtime_pcr(host) == Absent(AbsentReason.PCR_VALUES_EMPTY)
