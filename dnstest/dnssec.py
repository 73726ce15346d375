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
DNSSEC signing of test zones.

Keys are generated and zones are signed by BIND's `dnssec-keygen`,
`dnssec-signzone` and `dnssec-dsfromkey` running inside the container of the
name server which owns the zone.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence
import base64
import posixpath

from dns.name import Name
import dns.dnssec
import dns.name
import dns.rdatatype
import dns.rdtypes.dnskeybase
import dns.rrset

from . import record
from .zone import ZoneFile
import dnstest.log

KEY_DIR = "/etc/dnstest/keys"
ZONE_DIR = "/etc/dnstest/zones"

NSEC3_SHA1 = 1

DS_DIGESTS = {1: "SHA1", 2: "SHA256", 4: "SHA384"}


@dataclass(frozen=True)
class SignSettings:
    """
    Signing policy of a zone.

    The NSEC3 parameters are fixed so that the hashes in a test are
    reproducible: SHA-1, empty salt ("-" in presentation format) and one
    additional iteration.
    """

    algorithm: str = "RSASHA256"
    ksk_bits: int = 2048
    zsk_bits: int = 1024
    nsec3_salt: str = "-"
    nsec3_iterations: int = 1
    ds_digest_type: int = 2
    ttl: int = record.DEFAULT_TTL

    @property
    def salt_bytes(self) -> bytes:
        if self.nsec3_salt in ("", "-"):
            return b""
        return bytes.fromhex(self.nsec3_salt)


class DNSKey:
    """A single DNSKEY record of a zone."""

    def __init__(self, rrset: dns.rrset.RRset):
        assert rrset.rdtype == dns.rdatatype.DNSKEY, rrset
        assert len(rrset) == 1, rrset
        self.rrset = rrset

    @classmethod
    def from_keyfile(cls, text: str) -> "DNSKey":
        """Parse a `K<zone>+<alg>+<tag>.key` file as written by dnssec-keygen."""
        lines = [
            line
            for line in text.splitlines()
            if line.strip() and not line.lstrip().startswith(";")
        ]
        if len(lines) != 1:
            raise ValueError(f"expected exactly one DNSKEY in key file:\n{text}")
        return cls(record.from_text(lines[0]))

    @property
    def name(self) -> Name:
        return self.rrset.name

    @property
    def rdata(self):
        return self.rrset[0]

    @property
    def key_tag(self) -> int:
        return dns.dnssec.key_id(self.rdata)

    @property
    def is_ksk(self) -> bool:
        return bool(self.rdata.flags & dns.rdtypes.dnskeybase.Flag.SEP)

    def ds(self, digest_type: int = 2) -> dns.rrset.RRset:
        """Compute the DS record of this key."""
        ds_rdata = dns.dnssec.make_ds(
            self.name,
            self.rdata,
            DS_DIGESTS[digest_type],
            policy=dns.dnssec.allow_all_policy,
        )
        return dns.rrset.from_rdata(self.name, self.rrset.ttl, ds_rdata)

    def public_key(self) -> str:
        return base64.b64encode(self.rdata.key).decode("ascii")

    def to_text(self) -> str:
        return self.rrset.to_text()

    def __repr__(self) -> str:
        return f"DNSKey({self.name}, tag={self.key_tag}, ksk={self.is_ksk})"


class TrustAnchor:
    """
    Root keys handed to the resolver out of band.

    ```python
    anchor = TrustAnchor([root.key_signing_key, root.zone_signing_key])
    ```
    """

    def __init__(self, keys: Iterable[DNSKey] = ()):
        self.keys: List[DNSKey] = list(keys)

    def add(self, key: DNSKey) -> "TrustAnchor":
        self.keys.append(key)
        return self

    def is_empty(self) -> bool:
        return not self.keys

    def to_text(self) -> str:
        """DNSKEY records in presentation format, one per line."""
        return "".join(f"{key.to_text()}\n" for key in self.keys)

    def bind_statements(self) -> List[str]:
        """Entries of a named.conf `trust-anchors` block."""
        return [
            f'{key.name} static-key {key.rdata.flags} {key.rdata.protocol} '
            f'{int(key.rdata.algorithm)} "{key.public_key()}";'
            for key in self.keys
        ]

    def __len__(self) -> int:
        return len(self.keys)


@dataclass
class SignedZone:
    ksk: DNSKey
    zsk: DNSKey
    ds: dns.rrset.RRset
    zonefile: ZoneFile


def zone_file_name(origin: Name) -> str:
    label = "root" if origin == dns.name.root else origin.to_text(omit_final_dot=True)
    return f"{label}.zone"


class Signer:
    """
    Signing collaborator: generates keys and signs a zone inside `container`.

    `container` is anything with `exec()`, `write_file()` and `read_file()`
    methods, normally `dnstest.container.Container`.
    """

    def __init__(self, container, settings: SignSettings):
        self.container = container
        self.settings = settings

    def _keygen(self, origin: Name, bits: int, ksk: bool) -> str:
        command = [
            "dnssec-keygen",
            "-K",
            KEY_DIR,
            "-a",
            self.settings.algorithm,
            "-b",
            str(bits),
            "-L",
            str(self.settings.ttl),
        ]
        if ksk:
            command += ["-f", "KSK"]
        self.container.exec(["mkdir", "-p", KEY_DIR])
        out = self.container.exec(command + [origin.to_text()])
        basename = out.strip().splitlines()[-1].strip()
        dnstest.log.debug(f"generated {'KSK' if ksk else 'ZSK'} {basename}")
        return posixpath.join(KEY_DIR, basename)

    def _read_key(self, path: str) -> DNSKey:
        return DNSKey.from_keyfile(self.container.read_file(f"{path}.key"))

    def _ds(self, ksk_path: str, ksk: DNSKey) -> dns.rrset.RRset:
        out = self.container.exec(
            [
                "dnssec-dsfromkey",
                "-T",
                str(self.settings.ttl),
                f"-{self.settings.ds_digest_type}",
                f"{ksk_path}.key",
            ]
        )
        ds = record.from_text(out.strip().splitlines()[-1])
        expected = ksk.ds(self.settings.ds_digest_type)
        if ds != expected:
            raise RuntimeError(
                f"DS computed by dnssec-dsfromkey does not match the KSK:\n"
                f"{ds}\nexpected:\n{expected}"
            )
        return ds

    def sign(self, zonefile: ZoneFile) -> SignedZone:
        origin = zonefile.origin
        ksk_path = self._keygen(origin, self.settings.ksk_bits, ksk=True)
        zsk_path = self._keygen(origin, self.settings.zsk_bits, ksk=False)
        ksk = self._read_key(ksk_path)
        zsk = self._read_key(zsk_path)

        unsigned = posixpath.join(ZONE_DIR, zone_file_name(origin))
        signed = f"{unsigned}.signed"
        text = zonefile.to_text() + ksk.to_text() + "\n" + zsk.to_text() + "\n"
        self.container.write_file(unsigned, text)
        self.container.exec(
            [
                "dnssec-signzone",
                "-K",
                KEY_DIR,
                "-d",
                ZONE_DIR,
                "-3",
                self.settings.nsec3_salt or "-",
                "-H",
                str(self.settings.nsec3_iterations),
                "-o",
                origin.to_text(),
                "-f",
                signed,
                "-k",
                f"{ksk_path}.key",
                unsigned,
                f"{zsk_path}.key",
            ]
        )
        signed_zonefile = ZoneFile.from_text(self.container.read_file(signed), origin)
        ds = self._ds(ksk_path, ksk)
        dnstest.log.info(
            f"signed zone {origin}: KSK {ksk.key_tag}, ZSK {zsk.key_tag}, "
            f"{len(signed_zonefile.nsec3_rrsets())} NSEC3 records"
        )
        return SignedZone(ksk=ksk, zsk=zsk, ds=ds, zonefile=signed_zonefile)


def ds_matches(ds: dns.rrset.RRset, keys: Sequence[DNSKey]) -> bool:
    """Check whether `ds` was derived from one of `keys`."""
    for rdata in ds:
        for key in keys:
            if key.ds(rdata.digest_type)[0] == rdata:
                return True
    return False
