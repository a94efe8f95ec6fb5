"""Discovery of where the system timezone comes from."""

import os
import os.path
import platform
from typing import Literal, NamedTuple, Optional

SYSTEM = platform.system()
LOCALTIME = "/etc/localtime"


class ZoneSource(NamedTuple):
    """Where the system timezone can be loaded from.

    ``kind`` is one of:

    - ``"key"``: an IANA timezone key
    - ``"file"``: path to a TZif file whose key is unknown
    - ``"key_or_posix"``: an IANA key or a POSIX TZ string (unknown which)
    - ``"utc"``: nothing configured, ``value`` is empty
    """

    kind: Literal["key", "file", "key_or_posix", "utc"]
    value: str = ""


_UTC = ZoneSource("utc")


# On Linux and macOS, /etc/localtime is a symlink into the zoneinfo
# directory (or a plain copy of a TZif file). Elsewhere, we use tzlocal.
if SYSTEM in ("Linux", "Darwin"):  # pragma: no cover

    def _from_localtime() -> ZoneSource:
        if not os.path.exists(LOCALTIME):
            return _UTC
        path = os.path.realpath(LOCALTIME)
        if path != LOCALTIME and (key := _tzid_from_path(path)):
            return ZoneSource("key", key)
        return ZoneSource("file", path)

else:  # pragma: no cover
    import tzlocal

    def _from_localtime() -> ZoneSource:
        return ZoneSource("key", tzlocal.get_localzone_name())


def _tzid_from_path(path: str) -> Optional[str]:
    """Find the IANA timezone ID from a path to a zoneinfo file.
    Returns None if the path is not in a zoneinfo directory.
    """
    # The segment containing 'zoneinfo' may be
    # e.g. `zoneinfo/` or `zoneinfo.default/`
    if (index := path.find("/", path.rfind("zoneinfo"))) == -1:
        return None
    return path[index + 1 :]


def zone_source() -> ZoneSource:
    """Determine the system timezone source. The ``TZ`` environment
    variable takes precedence over the platform's configuration."""
    tz_env = os.environ.get("TZ")
    if tz_env is None:  # pragma: no cover
        return _from_localtime()

    tz_env = tz_env.removeprefix(":")
    if not tz_env:
        # An empty TZ means UTC on POSIX systems
        return _UTC
    elif os.path.isabs(tz_env):
        return ZoneSource("file", tz_env)
    # POSIX TZ strings always contain a digit, keys rarely do (Etc/GMT+5)
    elif any(c.isdigit() for c in tz_env):
        return ZoneSource("key_or_posix", tz_env)
    else:
        return ZoneSource("key", tz_env)
