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

from enum import Enum
from typing import List, Optional
import os
import posixpath
import shlex
import threading

from dnstest.network import Network
from dnstest.vars import ALL
from dnstest.vars.basic import MARKER
import dnstest.docker
import dnstest.log
import dnstest.template
import dnstest.util

_BUILD_LOCK = threading.Lock()
_BUILT = set()


class Image(Enum):
    """Container images used by the harness, value is the image kind."""

    CLIENT = "client"
    BIND = "bind"
    UNBOUND = "unbound"

    @property
    def packages(self) -> List[str]:
        return {
            Image.CLIENT: ["bind9-dnsutils"],
            Image.BIND: ["bind9", "bind9-utils", "bind9-dnsutils"],
            Image.UNBOUND: ["unbound", "bind9-dnsutils"],
        }[self]

    @property
    def tag(self) -> str:
        return f"{ALL['DNSTEST_IMAGE_PREFIX']}-{self.value}"

    @classmethod
    def from_implementation(cls, name: str) -> "Image":
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"no container image for implementation {name!r}") from None

    def ensure_built(self) -> None:
        with _BUILD_LOCK:
            if self in _BUILT:
                return
            if not dnstest.docker.image_exists(self.tag):
                dnstest.log.info(f"building image {self.tag}")
                dockerfile = dnstest.template.render(
                    "Dockerfile.j2", {"packages": " ".join(self.packages)}
                )
                dnstest.docker.build_image(self.tag, dockerfile)
            _BUILT.add(self)


class Container:
    """
    A sandboxed process environment attached to a `Network`.

    The container keeps its own handle to the network, so the network
    outlives every container placed in it.  The container is removed by
    `close()`, also available through the context manager protocol.
    """

    def __init__(self, image: Image, network: Network) -> None:
        self.image = image
        self.name = f"{MARKER}-{os.getpid()}-{dnstest.util.unique_id()}"
        self.network = network.clone()
        self._closed = False
        try:
            image.ensure_built()
            self.id = dnstest.docker.run_container(
                image.tag, self.name, self.network.name, ["sleep", "infinity"]
            )
        except Exception:
            self.network.close()
            raise
        try:
            self.ipv4_addr = dnstest.docker.container_ipv4_addr(self.id)
        except Exception:
            self.close()
            raise
        dnstest.log.debug(
            f"started container {self.name} ({image.tag}) at {self.ipv4_addr}"
        )

    def exec(
        self, command: List[str], input_text: Optional[bytes] = None, **kwargs
    ) -> str:
        return dnstest.docker.exec_in(self.id, command, input_text=input_text, **kwargs)

    def exec_detached(self, command: List[str]) -> None:
        dnstest.docker.exec_in(self.id, command, detach=True)

    def shell(self, script: str) -> str:
        return self.exec(["sh", "-c", script])

    def write_file(self, path: str, content: str) -> None:
        directory = posixpath.dirname(path)
        script = f"mkdir -p {shlex.quote(directory)} && cat > {shlex.quote(path)}"
        self.exec(["sh", "-c", script], input_text=content.encode("utf-8"))

    def read_file(self, path: str, missing_ok: bool = False) -> str:
        if missing_ok:
            script = f"cat {shlex.quote(path)} 2>/dev/null || true"
            return self.exec(["sh", "-c", script], log_stdout=False)
        return self.exec(["cat", path], log_stdout=False)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        dnstest.docker.remove_container(self.id)
        self.network.close()

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
