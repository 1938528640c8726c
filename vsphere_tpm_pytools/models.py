# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# TPM data structures - Data classes for TPM attestation data reported by vSphere.

"""
TPM attestation data as reported by vCenter Server and ESXi.

The vSphere API hands back ``HostTpmAttestationReport``, ``HostTpmEventLogEntry``
and ``HostTpmDigestInfo`` managed data objects. This module normalizes them into
plain dataclasses so the rest of the package never touches pyVmomi types
directly, and provides the tagged ``Present`` / ``Absent`` result returned by
every TPM query.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Iterable, List, Optional, TypeVar, Union

T = TypeVar("T")


def to_signed_byte(value: int) -> int:
    """
    Reinterpret a byte value as a signed 8-bit integer.

    Args:
        value: Byte value, either signed (-128..127) or unsigned (0..255)

    Returns:
        int: The value in the range -128..127

    Raises:
        ValueError: If value does not fit in a single byte
    """
    if not -128 <= value <= 255:
        raise ValueError(f"Value {value} does not fit in a byte")
    return value - 256 if value > 127 else value


def to_signed_bytes(values: Optional[Iterable[int]]) -> List[int]:
    """Convert a byte sequence (bytes, or a list of ints) to signed 8-bit values."""
    if values is None:
        return []
    return [to_signed_byte(v) for v in values]


@dataclass(frozen=True)
class ManagementCredentials:
    """Credentials for the vCenter Server (management) endpoint."""

    address: str
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class HostCredentials:
    """Credentials for direct ESXi host logins; the address is discovered per host."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class ManagedHostRef:
    """A host known to the management endpoint: managed object id and display name."""

    moid: str
    name: str

    @classmethod
    def from_managed_object(cls, host: Any) -> "ManagedHostRef":
        return cls(moid=host._moId, name=host.name)


@dataclass
class TpmEvent:
    """
    A single TPM event log entry.

    Attributes:
        pcr_index: PCR the event was extended into
        data_hash: Hash of the measured data, as signed 8-bit values
    """

    pcr_index: int
    data_hash: List[int]

    @classmethod
    def from_vim(cls, entry: Any) -> "TpmEvent":
        """Build from a ``vim.host.TpmEventLogEntry``."""
        details = entry.eventDetails
        data_hash = details.dataHash if details is not None else None
        return cls(pcr_index=entry.pcrIndex, data_hash=to_signed_bytes(data_hash))


@dataclass
class PcrDigest:
    """
    A PCR digest value.

    Attributes:
        digest_method: Hash algorithm name reported by the host (e.g. "SHA1")
        object_name: Name of the object the digest was computed over
        pcr_number: PCR index
        digest_value: Digest bytes as signed 8-bit values
    """

    digest_method: str
    object_name: Optional[str]
    pcr_number: int
    digest_value: List[int]

    @classmethod
    def from_vim(cls, info: Any) -> "PcrDigest":
        """Build from a ``vim.host.TpmDigestInfo``."""
        return cls(
            digest_method=str(info.digestMethod),
            object_name=info.objectName,
            pcr_number=info.pcrNumber,
            digest_value=to_signed_bytes(info.digestValue),
        )


def pcr_digests_from_vim(infos: Optional[Iterable[Any]]) -> List[PcrDigest]:
    """Convert a ``HostTpmDigestInfo[]`` array, tolerating ``None``."""
    return [PcrDigest.from_vim(info) for info in (infos or [])]


@dataclass
class AttestationReport:
    """TPM events and PCR values from ``QueryTpmAttestationReport``."""

    events: List[TpmEvent] = field(default_factory=list)
    pcr_values: List[PcrDigest] = field(default_factory=list)

    @classmethod
    def from_vim(cls, report: Any) -> "AttestationReport":
        """Build from a ``vim.host.TpmAttestationReport``; unset arrays become empty."""
        return cls(
            events=[TpmEvent.from_vim(e) for e in (report.tpmEvents or [])],
            pcr_values=pcr_digests_from_vim(report.tpmPcrValues),
        )


class AbsentReason(Enum):
    """Why a TPM query produced nothing to report."""

    TPM_UNSET = "TPM attestation report is unset"
    RUNTIME_UNSET = "Host runtime information is null"
    PCR_VALUES_EMPTY = "TPM PCR information is null or empty"


@dataclass(frozen=True)
class Present(Generic[T]):
    value: T

    @property
    def is_present(self) -> bool:
        return True


@dataclass(frozen=True)
class Absent:
    reason: AbsentReason

    @property
    def is_present(self) -> bool:
        return False


QueryResult = Union[Present[T], Absent]
