# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Query TPM utility - Fetch host TPM attestation information from vCenter Server and ESXi.

import argparse
import sys
from typing import List, Optional

from . import tpm_logging
from .config import QueryConfig
from .orchestrator import RunState, run

# Three complete option/value pairs
MIN_ARGUMENT_TOKENS = 6

# Options whose value may start with "-", such as a password
CREDENTIAL_OPTIONS = ("--vsphereip", "--username", "--password", "--esxUsername", "--esxPassword")

USAGE = (
    "Usage: vsphere-tpm-query --vsphereip <vCenter Server IP> --username <uname> "
    "--password <pwd> --esxUsername <uname> --esxPassword <pwd>\n"
    '"vsphere-tpm-query --vsphereip 10.4.5.6 --username admin --password dummyPwd '
    '--esxUsername rootUser --esxPassword dummyPwd"'
)

BANNER_START = "######################### Host TPM information fetcher execution STARTED #########################"
BANNER_END = "######################### Host TPM information fetcher execution completed #########################"
ARGS_RULE = "-" * 67


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vsphere-tpm-query",
        description="Fetch TPM PCR values and event logs from ESXi hosts managed by vCenter Server",
    )
    parser.add_argument("--vsphereip", help="vCenter Server address, host or host:port")
    parser.add_argument("--username", help="vCenter Server user name")
    parser.add_argument("--password", help="vCenter Server password")
    parser.add_argument("--esxUsername", help="ESXi user name for direct host queries")
    parser.add_argument("--esxPassword", help="ESXi password for direct host queries")
    parser.add_argument(
        "--probe-timeout",
        type=float,
        default=10,
        help="Timeout in seconds for endpoint probes (default: 10)",
    )
    parser.add_argument(
        "--no-probe",
        action="store_true",
        default=False,
        help="Skip the HTTPS reachability probe before logging in",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=False,
        help="Enable quiet mode (warnings and errors only)",
    )
    parser.add_argument("--log-file", type=str, help="Path to log file (optional)")
    return parser


def join_credential_values(argv: List[str]) -> List[str]:
    """
    Attach the token after each credential option as ``--option=value``.

    argparse treats a separate token starting with ``-`` as an option, so
    ``--password -Secret1`` would otherwise fail to parse.
    """
    joined = []
    tokens = iter(argv)
    for token in tokens:
        if token in CREDENTIAL_OPTIONS:
            value = next(tokens, None)
            joined.append(token if value is None else f"{token}={value}")
        else:
            joined.append(token)
    return joined


def print_usage() -> None:
    print(USAGE)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse command-line arguments and query TPM information for every host.

    Main entry point for the vsphere-tpm-query command-line utility. Fewer than
    three option/value pairs prints usage and exits without logging in.

    Returns:
        int: Exit code (0 for success or usage, 1 if the vCenter Server login failed)

    Examples:
        vsphere-tpm-query --vsphereip 10.4.5.6 --username admin --password pwd \\
            --esxUsername root --esxPassword pwd
    """
    argv = sys.argv[1:] if argv is None else argv

    print(BANNER_START)
    try:
        if len(argv) < MIN_ARGUMENT_TOKENS:
            print_usage()
            return 0

        args, unknown = build_parser().parse_known_args(join_credential_values(argv))
        logger = tpm_logging.setup_cli_logging(
            verbose=args.verbose, quiet=args.quiet, log_file=args.log_file
        )
        if unknown:
            logger.warning(f"Ignoring unrecognized arguments: {' '.join(unknown)}")
        config = QueryConfig.from_args(args)

        logger.info("Reading vSphere IP and credentials from command line arguments")
        print(ARGS_RULE)
        for line in config.describe():
            print(line)
        print(ARGS_RULE + "\n")

        summary = run(config)
        if summary.state is RunState.FAILED:
            print_usage()
            return 1

        failed_hosts = [o.host.name for o in summary.hosts if not o.succeeded]
        logger.info(
            f"Queried {len(summary.hosts)} host(s), {len(failed_hosts)} with failed query paths"
        )
        return 0
    finally:
        print(BANNER_END)


if __name__ == "__main__":
    sys.exit(main())
