import os
import sys
from typing import Iterable, Protocol

from hyperstress.errors import Unsupported


class SupportProbe(Protocol):
    def supported(self, name: str) -> None: ...


class PlatformSupport:
    def __init__(self, platforms: Iterable[str] = ("linux",)) -> None:
        self._platforms = tuple(platforms)

    def supported(self, name: str) -> None:
        if not sys.platform.startswith(self._platforms):
            raise Unsupported(
                name,
                f"only supported on {', '.join(self._platforms)} (running on {sys.platform})",
            )


class PrivilegeSupport:
    def supported(self, name: str) -> None:
        if os.geteuid() != 0:
            raise Unsupported(
                name,
                "need to be running with root privileges for this stressor",
            )


class AllOf:
    def __init__(self, *probes: SupportProbe) -> None:
        self._probes = probes

    def supported(self, name: str) -> None:
        for probe in self._probes:
            probe.supported(name)
