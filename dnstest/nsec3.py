# Copyright (C) Internet Systems Consortium, Inc. ("ISC")
#
# SPDX-License-Identifier: MPL-2.0
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0.  If a copy of the MPL was not distributed with this
# file, you can obtain one at https://mozilla.org/MPL/2.0/.
#
# See the COPYRIGHT file distributed with this work for additional
# information regarding copyright ownership.


"""
Structural verification of NSEC3 proofs of non-existence (RFC 5155).

The verifier does not validate signatures, that is the job of the resolver
under test.  It checks that the NSEC3 records returned in a response are the
ones a correct server must have returned, by comparing them with a reference
table of hashes of all names which exist in the zone.

Hashes are compared as upper-case base32hex strings; within one zone this is
the canonical order of the hashed owner names.
"""

from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from dns.name import Name
import dns.dnssec
import dns.message
import dns.name
import dns.rcode
import dns.rdataclass
import dns.rdatatype
import dns.rdtypes.ANY.NSEC3
import dns.rrset
import dns.zone

from .name import ZoneAnalyzer, fqdn, nameserver_index
from .zone import ZoneFile

SHA1 = 1


class NSEC3ProofError(AssertionError):
    """The NSEC3 records do not prove what they should."""


class NSEC3ParameterError(AssertionError):
    """An NSEC3 record uses unexpected hash parameters."""


@dataclass(frozen=True)
class NSEC3Fixture:
    """Hash parameters every NSEC3 record of a test is expected to use."""

    algorithm: int = SHA1
    salt: str = "-"
    iterations: int = 1

    @property
    def salt_bytes(self) -> bytes:
        if self.salt in ("", "-"):
            return b""
        return bytes.fromhex(self.salt)

    def hash(self, name: Union[str, Name]) -> str:
        return nsec3_hash(name, self.salt_bytes, self.iterations, self.algorithm)


def nsec3_hash(
    name: Union[str, Name], salt: bytes = b"", iterations: int = 1, algorithm=SHA1
) -> str:
    """
    >>> nsec3_hash("example.", bytes.fromhex("aabbccdd"), 12)
    '0P9MHAVEQVM6T7VBL5LOP2U3T2RP3TOM'
    """
    if isinstance(name, str):
        name = dns.name.from_text(name)
    return dns.dnssec.nsec3_hash(
        name, salt=salt, iterations=iterations, algorithm=algorithm
    ).upper()


class HashedNameTable:
    """
    Sorted circular list of NSEC3 hashes of all names existing in a zone.

    >>> table = HashedNameTable(["B", "D", "F"])
    >>> table.find_prev("C"), table.find_next("C")
    ('B', 'D')
    >>> table.find_prev("A"), table.find_next("F")
    ('F', 'B')
    """

    def __init__(self, hashes: Iterable[str]):
        self.hashes: List[str] = sorted({h.upper() for h in hashes})
        if not self.hashes:
            raise ValueError("hashed name table must not be empty")

    @classmethod
    def from_names(
        cls, names: Iterable[Union[str, Name]], fixture: Optional[NSEC3Fixture] = None
    ) -> "HashedNameTable":
        fixture = fixture or NSEC3Fixture()
        return cls(fixture.hash(name) for name in names)

    @classmethod
    def from_zone(
        cls,
        zone: Union[dns.zone.Zone, ZoneFile],
        fixture: Optional[NSEC3Fixture] = None,
    ) -> "HashedNameTable":
        """Table of an unsigned zone, including empty non-terminals and delegations."""
        if isinstance(zone, ZoneFile):
            zone = zone.zone
        return cls.from_names(ZoneAnalyzer(zone).all_existing_names, fixture)

    @classmethod
    def from_static_and_dynamic(
        cls,
        static_hashes: Iterable[str],
        hosts: Iterable[Name],
        fixture: Optional[NSEC3Fixture] = None,
    ) -> "HashedNameTable":
        """
        Table made of hashes known in advance plus hashes of name server host
        names which are only known once the hierarchy is built.
        """
        fixture = fixture or NSEC3Fixture()
        hashes = list(static_hashes)
        for host in hosts:
            nameserver_index(host)  # raises on unrecognized host names
            hashes.append(fixture.hash(host))
        return cls(hashes)

    @classmethod
    def from_signed_zone(cls, zonefile: ZoneFile) -> "HashedNameTable":
        """Owner hashes of the NSEC3 chain of a signed zone."""
        return cls(
            rrset.name.labels[0].decode("ascii") for rrset in zonefile.nsec3_rrsets()
        )

    def find_prev(self, needle: str) -> str:
        """Closest hash strictly before `needle`, wrapping to the last one."""
        index = bisect_left(self.hashes, needle.upper())
        return self.hashes[index - 1]

    def find_next(self, needle: str) -> str:
        """Closest hash strictly after `needle`, wrapping to the first one."""
        index = bisect_right(self.hashes, needle.upper())
        return self.hashes[index % len(self.hashes)]

    def __contains__(self, needle: str) -> bool:
        index = bisect_left(self.hashes, needle.upper())
        return index < len(self.hashes) and self.hashes[index] == needle.upper()

    def __len__(self) -> int:
        return len(self.hashes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.hashes)

    def __getitem__(self, index: int) -> str:
        return self.hashes[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, HashedNameTable):
            return NotImplemented
        return self.hashes == other.hashes

    def __str__(self) -> str:
        return "\n".join(self.hashes)


@dataclass(frozen=True)
class NSEC3Record:
    owner_hash: str
    zone: Name
    next_hashed_owner_name: str
    hash_algorithm: int
    flags: int
    salt: str
    iterations: int
    types: Tuple[str, ...] = ()

    @classmethod
    def from_rdata(
        cls, owner: Name, rdata: dns.rdtypes.ANY.NSEC3.NSEC3
    ) -> "NSEC3Record":
        # presentation format: algorithm flags iterations salt next [types...]
        fields = rdata.to_text().split()
        owner_hash, zone = owner.split(len(owner) - 1)
        return cls(
            owner_hash=owner_hash.to_text(omit_final_dot=True).upper(),
            zone=zone,
            next_hashed_owner_name=fields[4].upper(),
            hash_algorithm=rdata.algorithm,
            flags=rdata.flags,
            salt=fields[3].upper(),
            iterations=rdata.iterations,
            types=tuple(fields[5:]),
        )

    @classmethod
    def from_rrset(cls, rrset: dns.rrset.RRset) -> List["NSEC3Record"]:
        if rrset.rdtype != dns.rdatatype.NSEC3:
            raise ValueError(f"not an NSEC3 RRset: {rrset}")
        return [cls.from_rdata(rrset.name, rdata) for rdata in rrset]

    def covers(self, hashed_name: str) -> bool:
        return covers(self, hashed_name)

    def __str__(self) -> str:
        return (
            f"{self.owner_hash}.{self.zone} NSEC3 {self.hash_algorithm} {self.flags} "
            f"{self.iterations} {self.salt} {self.next_hashed_owner_name}"
        )


def covers(record: NSEC3Record, hashed_name: str) -> bool:
    """
    Test if `hashed_name` falls strictly between the owner and the next
    hashed owner name of `record`, i.e. the name does not exist.

    >>> r = NSEC3Record("B", dns.name.root, "D", 1, 0, "-", 1)
    >>> covers(r, "C"), covers(r, "B"), covers(r, "D")
    (True, False, False)
    >>> last = NSEC3Record("X", dns.name.root, "B", 1, 0, "-", 1)
    >>> covers(last, "Z"), covers(last, "A"), covers(last, "C")
    (True, True, False)
    """
    owner = record.owner_hash.upper()
    nxt = record.next_hashed_owner_name.upper()
    hashed_name = hashed_name.upper()

    # Standard case.
    if owner < nxt:
        return owner < hashed_name < nxt

    # The cover wraps (or the chain has a single name, owner == next).
    return hashed_name > owner or hashed_name < nxt


@dataclass(frozen=True)
class NSEC3Proof:
    closest_encloser: NSEC3Record
    next_closer: NSEC3Record
    wildcard: Optional[NSEC3Record]

    @property
    def records(self) -> List[NSEC3Record]:
        result = [self.closest_encloser, self.next_closer]
        if self.wildcard is not None:
            result.append(self.wildcard)
        return result


class NSEC3Checker:
    """
    Checks NSEC3 records of one response against the reference `table`.

    Every record used by a proof is remembered, `check_extraneous_rrs()`
    then makes sure the response did not contain anything else.
    """

    def __init__(
        self,
        response: Union[dns.message.Message, Sequence[NSEC3Record]],
        table: HashedNameTable,
        fixture: Optional[NSEC3Fixture] = None,
    ):
        self.fixture = fixture or NSEC3Fixture()
        self.table = table
        if isinstance(response, dns.message.Message):
            self.response: Optional[dns.message.Message] = response
            self.records = self._records_from_message(response)
        else:
            self.response = None
            self.records = list(response)

        owners_seen = set()
        for rec in self.records:
            if rec.owner_hash in owners_seen:
                raise NSEC3ProofError(f"duplicate NSEC3 owner {rec.owner_hash}\n{self}")
            owners_seen.add(rec.owner_hash)
            self._check_parameters(rec)
        self.owners_used = set()

    @staticmethod
    def _records_from_message(message: dns.message.Message) -> List[NSEC3Record]:
        for section in (message.answer, message.additional):
            for rrset in section:
                if rrset.match(
                    dns.rdataclass.IN, dns.rdatatype.NSEC3, dns.rdatatype.NONE
                ):
                    raise NSEC3ProofError(
                        f"unexpected NSEC3 RR outside of AUTHORITY section:\n{message}"
                    )
        records = []
        for rrset in message.authority:
            if rrset.match(dns.rdataclass.IN, dns.rdatatype.NSEC3, dns.rdatatype.NONE):
                records.extend(NSEC3Record.from_rrset(rrset))
        return records

    def _check_parameters(self, rec: NSEC3Record) -> None:
        expected = [
            ("hash algorithm", rec.hash_algorithm, self.fixture.algorithm),
            ("salt", rec.salt, self.fixture.salt.upper() or "-"),
            ("iterations", rec.iterations, self.fixture.iterations),
        ]
        for what, got, want in expected:
            if got != want:
                raise NSEC3ParameterError(
                    f"unexpected NSEC3 {what} {got}, expected {want}: {rec}"
                )
        if rec.flags != 0:
            raise NSEC3ParameterError(f"opt-out is not supported: {rec}")
        if "NSEC3" in rec.types:
            raise NSEC3ParameterError(f"NSEC3 in type bitmap: {rec}")

    def hash_name(self, name: Union[str, Name]) -> str:
        return self.fixture.hash(name)

    def _fail(self, msg: str, expected: Iterable[str] = ()) -> NSEC3ProofError:
        expected = ", ".join(expected)
        text = f"{msg}\nexpected table entries: {expected}\n{self}"
        return NSEC3ProofError(text)

    def closest_encloser_proof(
        self, qname: Union[str, Name], closest_encloser: Union[str, Name]
    ) -> NSEC3Record:
        """
        The closest encloser exists, so there must be a record owned by its
        hash whose next hashed owner name is the table successor.
        """
        qname = fqdn(qname)
        closest_encloser = fqdn(closest_encloser)
        if not qname.is_subdomain(closest_encloser) or qname == closest_encloser:
            raise ValueError(f"{closest_encloser} does not enclose {qname}")
        hashed = self.hash_name(closest_encloser)
        if hashed not in self.table:
            raise self._fail(
                f"closest encloser {closest_encloser} ({hashed}) does not exist in the zone"
            )
        matching = [rec for rec in self.records if rec.owner_hash == hashed]
        if len(matching) != 1:
            raise self._fail(
                f"expected one NSEC3 matching closest encloser {closest_encloser} "
                f"({hashed}), found {len(matching)}",
                [hashed],
            )
        rec = matching[0]
        expected_next = self.table.find_next(hashed)
        if rec.next_hashed_owner_name != expected_next:
            raise self._fail(
                f"closest encloser NSEC3 {rec} does not point to the next hash",
                [hashed, expected_next],
            )
        self.owners_used.add(rec.owner_hash)
        return rec

    def _covering_proof(self, name: Name, what: str) -> NSEC3Record:
        hashed = self.hash_name(name)
        if hashed in self.table:
            raise self._fail(f"{what} {name} ({hashed}) exists in the zone")
        expected_owner = self.table.find_prev(hashed)
        expected_next = self.table.find_next(expected_owner)
        matching = [rec for rec in self.records if covers(rec, hashed)]
        if len(matching) != 1:
            raise self._fail(
                f"expected one NSEC3 covering {what} {name} ({hashed}), "
                f"found {len(matching)}",
                [expected_owner, expected_next],
            )
        rec = matching[0]
        if (
            rec.owner_hash != expected_owner
            or rec.next_hashed_owner_name != expected_next
        ):
            raise self._fail(
                f"NSEC3 {rec} covering {what} {name} ({hashed}) does not match "
                "the neighbours in the zone",
                [expected_owner, expected_next],
            )
        self.owners_used.add(rec.owner_hash)
        return rec

    def next_closer_name_proof(self, next_closer: Union[str, Name]) -> NSEC3Record:
        return self._covering_proof(fqdn(next_closer), "next closer name")

    def wildcard_proof(self, closest_encloser: Union[str, Name]) -> NSEC3Record:
        wildcard = Name("*") + fqdn(closest_encloser)
        return self._covering_proof(wildcard, "wildcard")

    def check_nxdomain(
        self,
        qname: Union[str, Name],
        closest_encloser: Union[str, Name],
        wildcard: bool = True,
    ) -> NSEC3Proof:
        """
        Complete NXDOMAIN proof, RFC 5155 section 7.2.2: closest encloser,
        next closer name and (unless `wildcard` is False) the wildcard at the
        closest encloser.
        """
        qname = fqdn(qname)
        closest_encloser = fqdn(closest_encloser)
        if self.response is not None:
            rcode = self.response.rcode()
            if rcode != dns.rcode.NXDOMAIN:
                raise NSEC3ProofError(
                    f"expected NXDOMAIN, got {dns.rcode.to_text(rcode)}\n{self.response}"
                )
        ce_record = self.closest_encloser_proof(qname, closest_encloser)
        _, next_closer = qname.split(len(closest_encloser) + 1)
        nc_record = self.next_closer_name_proof(next_closer)
        wc_record = None
        if wildcard:
            wc_record = self.wildcard_proof(closest_encloser)
        return NSEC3Proof(ce_record, nc_record, wc_record)

    def check_extraneous_rrs(self) -> None:
        """Every NSEC3 record in the response must have been used by a proof."""
        unused = [rec for rec in self.records if rec.owner_hash not in self.owners_used]
        if unused:
            raise NSEC3ProofError(
                "extraneous NSEC3 records:\n" + "\n".join(str(rec) for rec in unused)
            )

    def __str__(self) -> str:
        lines = ["NSEC3 records:"]
        lines += [f"  {rec}" for rec in self.records] or ["  (none)"]
        lines.append("reference table:")
        lines += [f"  {h}" for h in self.table]
        return "\n".join(lines)
