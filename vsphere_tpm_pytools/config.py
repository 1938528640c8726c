# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Run configuration - Credentials and options for a TPM query run.

import argparse
from dataclasses import dataclass
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import HostCredentials, ManagementCredentials

MASKED_PASSWORD = "******"


class CredentialSettings(BaseSettings):
    """Credentials read from the environment, used for options not given on the command line."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    # VSPHERE_IP, VSPHERE_USERNAME, ...
    vsphere_ip: Optional[str] = None
    vsphere_username: Optional[str] = None
    vsphere_password: Optional[str] = None
    esxi_username: Optional[str] = None
    esxi_password: Optional[str] = None


@dataclass
class QueryConfig:
    """
    Configuration for one TPM query run.

    Attributes:
        management: vCenter Server credentials, None if incomplete
        host_credentials: ESXi credentials, None if incomplete (direct host queries are skipped)
        probe: Probe endpoints over HTTPS before logging in
        probe_timeout: Timeout in seconds for probes and certificate fetches
    """

    management: Optional[ManagementCredentials]
    host_credentials: Optional[HostCredentials] = None
    probe: bool = True
    probe_timeout: float = 10

    @classmethod
    def from_args(
        cls, args: argparse.Namespace, settings: Optional[CredentialSettings] = None
    ) -> "QueryConfig":
        """
        Build the configuration from parsed arguments, falling back to
        environment variables for missing credentials.

        Args:
            args: Parsed command-line arguments
            settings: Environment credentials (default: read from the process environment)

        Returns:
            QueryConfig: Run configuration
        """
        settings = CredentialSettings() if settings is None else settings

        address = args.vsphereip or settings.vsphere_ip
        username = args.username or settings.vsphere_username
        password = args.password if args.password is not None else settings.vsphere_password
        management = None
        if address and username and password is not None:
            management = ManagementCredentials(address, username, password)

        esx_username = args.esxUsername or settings.esxi_username
        esx_password = args.esxPassword if args.esxPassword is not None else settings.esxi_password
        host_credentials = None
        if esx_username and esx_password is not None:
            host_credentials = HostCredentials(esx_username, esx_password)

        return cls(
            management=management,
            host_credentials=host_credentials,
            probe=not getattr(args, "no_probe", False),
            probe_timeout=getattr(args, "probe_timeout", 10),
        )

    def describe(self) -> List[str]:
        """Human-readable summary with passwords masked."""
        lines = []
        if self.management is not None:
            lines.append(f"vSphere IP: {self.management.address}")
            lines.append(f"VC Username: {self.management.username}")
            lines.append(f"VC Password: {MASKED_PASSWORD}")
        if self.host_credentials is not None:
            lines.append(f"ESXi Username: {self.host_credentials.username}")
            lines.append(f"ESXi Password: {MASKED_PASSWORD}")
        return lines
