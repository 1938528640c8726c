# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Report printing - Human-readable output of TPM events and PCR digests.

import sys
from typing import Iterable, Optional, TextIO

from .models import PcrDigest, TpmEvent, to_signed_byte

SECTION_RULE = "_" * 79
ENTRY_RULE = "-" * 33


def format_signed_bytes(values: Iterable[int]) -> str:
    """
    Format bytes as signed 8-bit decimals, each followed by ", ".

    >>> format_signed_bytes([0, 127, -128, -1])
    '0, 127, -128, -1, '
    >>> format_signed_bytes(b"\\x80\\xff")
    '-128, -1, '
    """
    return "".join(f"{to_signed_byte(v)}, " for v in values)


def _print_section_header(title: str, stream: TextIO) -> None:
    print(SECTION_RULE, file=stream)
    print(f" * * * * {title} * * * *", file=stream)
    print(SECTION_RULE, file=stream)


def print_events(events: Iterable[TpmEvent], stream: Optional[TextIO] = None) -> None:
    """
    Print TPM event log entries in input order.

    Args:
        events: Events to print
        stream: Output stream (default: sys.stdout)
    """
    stream = stream or sys.stdout
    _print_section_header("TPM events", stream)
    for event in events:
        print(ENTRY_RULE, file=stream)
        print(f"PCR Index: {event.pcr_index}", file=stream)
        print("Hash: ", file=stream)
        print(format_signed_bytes(event.data_hash), file=stream)
        print(ENTRY_RULE, file=stream)


def print_pcr_digests(digests: Iterable[PcrDigest], stream: Optional[TextIO] = None) -> None:
    """
    Print PCR digest values in input order.

    Args:
        digests: PCR digests to print
        stream: Output stream (default: sys.stdout)
    """
    stream = stream or sys.stdout
    _print_section_header("TPM digest information", stream)
    for digest in digests:
        print(ENTRY_RULE, file=stream)
        print(f"Digest Method: {digest.digest_method}", file=stream)
        print(f"Object Name: {digest.object_name}", file=stream)
        print(f"PCR Number: {digest.pcr_number}", file=stream)
        print("Digest Value: ", file=stream)
        print(format_signed_bytes(digest.digest_value), file=stream)
        print(ENTRY_RULE, file=stream)
