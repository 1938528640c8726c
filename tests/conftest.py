# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Shared fixtures - Fake vSphere managed objects for unit tests.

from types import SimpleNamespace
from unittest import mock

import pytest

from vsphere_tpm_pytools.endpoint import EndpointAddress
from vsphere_tpm_pytools.session import Session, SessionRole


def make_digest(pcr_number, digest_value, digest_method="SHA256", object_name=None):
    """Stand-in for vim.host.TpmDigestInfo."""
    return SimpleNamespace(
        digestMethod=digest_method,
        objectName=object_name,
        pcrNumber=pcr_number,
        digestValue=digest_value,
    )


def make_event(pcr_index, data_hash):
    """Stand-in for vim.host.TpmEventLogEntry."""
    return SimpleNamespace(
        pcrIndex=pcr_index, eventDetails=SimpleNamespace(dataHash=data_hash)
    )


class FakeHost:
    """Stand-in for a vim.HostSystem handle."""

    def __init__(
        self,
        name,
        report=None,
        report_error=None,
        runtime_pcrs=None,
        runtime_missing=False,
        connection_state="connected",
        tpm_supported=True,
    ):
        self._moId = f"host-{name}"
        self.name = name
        self._report = report
        self._report_error = report_error
        self.runtime = None
        if not runtime_missing:
            self.runtime = SimpleNamespace(
                connectionState=connection_state, tpmPcrValues=runtime_pcrs
            )
        self.capability = SimpleNamespace(tpmSupported=tpm_supported)
        self.report_calls = 0

    def QueryTpmAttestationReport(self):
        self.report_calls += 1
        if self._report_error is not None:
            raise self._report_error
        return self._report


def make_session(hosts=(), address="vc.example.com", role=SessionRole.MANAGEMENT):
    """Build a Session whose inventory container view yields ``hosts``."""
    service_instance = mock.MagicMock(name="ServiceInstance")
    view = mock.MagicMock(name="ContainerView")
    view.view = list(hosts)
    content = service_instance.RetrieveContent.return_value
    content.viewManager.CreateContainerView.return_value = view
    return Session(
        service_instance=service_instance,
        address=EndpointAddress(host=address),
        role=role,
    )


@pytest.fixture
def sample_report():
    return SimpleNamespace(
        tpmEvents=[make_event(0, [1, 2, 255]), make_event(7, [0, 128])],
        tpmPcrValues=[make_digest(0, [0, 127, 128, 255]), make_digest(7, [16, 32])],
    )
