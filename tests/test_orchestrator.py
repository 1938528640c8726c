# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT

import io
from types import SimpleNamespace
from unittest import mock

from pyVmomi import vmodl

from vsphere_tpm_pytools import inventory, orchestrator
from vsphere_tpm_pytools.config import QueryConfig
from vsphere_tpm_pytools.endpoint import LoginFailureReason
from vsphere_tpm_pytools.inventory import HostSearchScope
from vsphere_tpm_pytools.models import HostCredentials, ManagedHostRef, ManagementCredentials
from vsphere_tpm_pytools.orchestrator import HostStage, RunState, run
from vsphere_tpm_pytools.session import LoginError, SessionRole

from .conftest import FakeHost, make_digest, make_session

DIGEST_HEADER = "TPM digest information"


def make_config(with_host_credentials=True):
    return QueryConfig(
        management=ManagementCredentials("vc.example.com", "admin", "pwd"),
        host_credentials=HostCredentials("root", "pwd") if with_host_credentials else None,
        probe=False,
    )


class FakeVSphere:
    """Patches the session and inventory layers of the orchestrator."""

    def __init__(self, vc_hosts, esx_hosts=None, host_login_errors=(), unresolvable=()):
        self.unresolvable = set(unresolvable)
        self.vc_hosts = {h.name: h for h in vc_hosts}
        self.esx_hosts = esx_hosts if esx_hosts is not None else self.vc_hosts
        self.host_login_errors = set(host_login_errors)
        self.management_session = mock.MagicMock(name="vc-session")
        self.host_sessions = []

    def login_host(self, address, username, password, **kwargs):
        if address in self.host_login_errors:
            raise LoginError(address, LoginFailureReason.INVALID_CREDENTIALS)
        host_session = mock.MagicMock(name=f"esx-session-{address}")
        host_session.host_name = address
        self.host_sessions.append(host_session)
        return host_session

    def list_hosts(self, session):
        return [ManagedHostRef(h._moId, name) for name, h in self.vc_hosts.items()]

    def resolve_host(self, session, host_ref=None, host_name=None, scope=HostSearchScope.MANAGEMENT):
        if scope is HostSearchScope.HOST_SELF:
            return self.esx_hosts.get(session.host_name)
        if host_ref.name in self.unresolvable:
            return None
        return self.vc_hosts.get(host_ref.name)

    def __enter__(self):
        self._patches = [
            mock.patch.object(orchestrator, "login_management", return_value=self.management_session),
            mock.patch.object(orchestrator, "login_host", side_effect=self.login_host),
            mock.patch.object(orchestrator, "list_hosts", side_effect=self.list_hosts),
            mock.patch.object(orchestrator, "resolve_host", side_effect=self.resolve_host),
        ]
        self.mocks = [p.start() for p in self._patches]
        self.login_management = self.mocks[0]
        return self

    def __exit__(self, *exc):
        for p in self._patches:
            p.stop()


def report_with(pcr_values):
    return SimpleNamespace(tpmEvents=[], tpmPcrValues=pcr_values)


def test_full_run_queries_all_three_paths(sample_report):
    host = FakeHost("esx01", report=sample_report, runtime_pcrs=[make_digest(0, [1])])
    stream = io.StringIO()

    with FakeVSphere([host]) as fake:
        summary = run(make_config(), stream)

    assert summary.state is RunState.FINISHED
    assert [o.stage for o in summary.hosts] == [HostStage.DONE]
    assert summary.hosts[0].succeeded
    output = stream.getvalue()
    assert "Host : esx01" in output
    assert "TPM events" in output
    assert "ESXi host TPM Support: True" in output
    # Attestation report, VC runtime and ESXi runtime
    assert output.count(DIGEST_HEADER) == 3
    fake.management_session.logout.assert_called_once()
    fake.host_sessions[0].logout.assert_called_once()


def test_failing_host_does_not_stop_others(caplog):
    digests = [make_digest(0, [1, 2])]
    hosts = [
        FakeHost("esx01", report=report_with(digests), runtime_pcrs=digests),
        FakeHost("esx02", report_error=vmodl.RuntimeFault(msg="boom"), runtime_pcrs=digests),
        FakeHost("esx03", report=report_with(digests), runtime_pcrs=digests),
    ]
    stream = io.StringIO()

    with FakeVSphere(hosts):
        summary = run(make_config(), stream)

    outcomes = {o.host.name: o for o in summary.hosts}
    assert outcomes["esx01"].succeeded
    assert outcomes["esx03"].succeeded
    assert outcomes["esx02"].failed_stages == [HostStage.VC_QUERIED]
    assert outcomes["esx02"].stage is HostStage.DONE
    assert "for host esx02" in caplog.text
    output = stream.getvalue()
    for name in ("esx01", "esx02", "esx03"):
        assert f"Host : {name}" in output
    # esx02 loses only its attestation report section
    assert output.count(DIGEST_HEADER) == 8


def test_absent_report_and_runtime_print_nothing(caplog):
    host = FakeHost("esx01", report=None, runtime_missing=True)
    stream = io.StringIO()

    with FakeVSphere([host]):
        summary = run(make_config(), stream)

    output = stream.getvalue()
    assert DIGEST_HEADER not in output
    assert "PCR Index" not in output
    assert summary.hosts[0].succeeded
    assert "TPM attestation report is unset" in caplog.text
    assert "Host runtime information is null" in caplog.text


def test_identical_pcr_values_printed_per_source():
    digests = [make_digest(4, [9, 9, 9])]
    host = FakeHost("esx01", report=None, runtime_pcrs=digests)
    stream = io.StringIO()

    with FakeVSphere([host]):
        run(make_config(), stream)

    output = stream.getvalue()
    assert output.count(DIGEST_HEADER) == 2
    assert output.count("9, 9, 9, ") == 2


def test_one_management_session_and_one_host_session_per_host():
    hosts = [FakeHost(f"esx0{i}", report=None) for i in range(1, 4)]

    with FakeVSphere(hosts) as fake:
        summary = run(make_config(), io.StringIO())

    fake.login_management.assert_called_once()
    assert len(fake.host_sessions) == 3
    assert summary.host_sessions_created == 3


def test_host_login_failure_only_skips_direct_path(caplog):
    digests = [make_digest(0, [5])]
    hosts = [
        FakeHost("esx01", report=report_with(digests), runtime_pcrs=digests),
        FakeHost("esx02", report=report_with(digests), runtime_pcrs=digests),
    ]
    stream = io.StringIO()

    with FakeVSphere(hosts, host_login_errors={"esx01"}) as fake:
        summary = run(make_config(), stream)

    outcomes = {o.host.name: o for o in summary.hosts}
    assert not outcomes["esx01"].host_session_created
    assert outcomes["esx01"].succeeded
    assert outcomes["esx02"].host_session_created
    assert "Failed to login to host esx01" in caplog.text
    # esx01: report + VC runtime; esx02: report + VC runtime + ESXi runtime
    assert stream.getvalue().count(DIGEST_HEADER) == 5
    fake.management_session.logout.assert_called_once()


def test_no_host_credentials_skips_direct_path(caplog):
    host = FakeHost("esx01", report=None, runtime_pcrs=[make_digest(0, [1])])

    with FakeVSphere([host]) as fake:
        summary = run(make_config(with_host_credentials=False), io.StringIO())

    assert fake.host_sessions == []
    assert summary.hosts[0].succeeded
    assert "no ESXi credentials" in caplog.text


def test_unresolvable_self_host_still_logs_out():
    host = FakeHost("esx01", report=None)

    with FakeVSphere([host], esx_hosts={}) as fake:
        summary = run(make_config(), io.StringIO())

    assert summary.hosts[0].host_session_created
    fake.host_sessions[0].logout.assert_called_once()


def test_management_login_failure_is_fatal(caplog):
    error = LoginError("vc.example.com", LoginFailureReason.UNREACHABLE)
    with mock.patch.object(orchestrator, "login_management", side_effect=error), \
            mock.patch.object(orchestrator, "list_hosts") as list_hosts:
        summary = run(make_config(), io.StringIO())

    assert summary.state is RunState.FAILED
    assert summary.login_error is error
    list_hosts.assert_not_called()
    assert "Possible reasons" in caplog.text


def test_missing_management_credentials_fails_without_login():
    with mock.patch.object(orchestrator, "login_management") as login_management:
        summary = run(QueryConfig(management=None), io.StringIO())
    assert summary.state is RunState.FAILED
    login_management.assert_not_called()


def test_empty_inventory_finishes(caplog):
    with FakeVSphere([]) as fake:
        summary = run(make_config(), io.StringIO())

    assert summary.state is RunState.FINISHED
    assert summary.hosts == []
    assert "Could not find any hosts" in caplog.text
    fake.management_session.logout.assert_called_once()


def test_host_missing_from_vc_skips_runtime_query(caplog):
    host = FakeHost("esx01", report=None)

    with FakeVSphere([host], unresolvable={"esx01"}):
        summary = run(make_config(), io.StringIO())

    assert summary.hosts[0].failed_stages == [HostStage.VC_QUERIED]
    assert "skipping runtime query" in caplog.text


def run_against_inventory(host, config, stream):
    """Run with real inventory lookups over fake vCenter Server and ESXi sessions."""
    vc_session = make_session([host])
    esx_session = make_session([host], address=host.name, role=SessionRole.HOST)
    with mock.patch.object(orchestrator, "login_management", return_value=vc_session), \
            mock.patch.object(orchestrator, "login_host", return_value=esx_session), \
            mock.patch.object(inventory, "vim") as vim:
        vim.HostSystem.return_value = host
        return run(config, stream)


def test_absent_runtime_through_inventory_queries_every_path(caplog):
    host = FakeHost("esx01", report=None, runtime_missing=True)
    stream = io.StringIO()

    summary = run_against_inventory(host, make_config(), stream)

    outcome = summary.hosts[0]
    assert outcome.failed_stages == []
    assert outcome.host_session_created
    assert host.report_calls == 1
    assert "TPM attestation report is unset" in caplog.text
    assert caplog.text.count("Host runtime information is null for host esx01") == 2
    assert DIGEST_HEADER not in stream.getvalue()


def test_runtime_pcrs_through_inventory(caplog):
    host = FakeHost("esx01", report=None, runtime_pcrs=[make_digest(2, [3])])
    stream = io.StringIO()

    summary = run_against_inventory(host, make_config(), stream)

    assert summary.hosts[0].succeeded
    assert stream.getvalue().count(DIGEST_HEADER) == 2


def test_inventory_connection_error_ends_run_cleanly(caplog):
    vc_session = make_session()
    vc_session.content.viewManager.CreateContainerView.side_effect = ConnectionResetError("reset")
    with mock.patch.object(orchestrator, "login_management", return_value=vc_session):
        summary = run(make_config(), io.StringIO())

    assert summary.state is RunState.FINISHED
    assert summary.hosts == []
    assert "Could not find any hosts" in caplog.text
