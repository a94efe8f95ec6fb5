import os
from contextlib import contextmanager
from unittest.mock import patch

# The POSIX TZ string for the Amsterdam timezone.
AMS_TZ_POSIX = "CET-1CEST,M3.5.0,M10.5.0/3"


class AlwaysEqual:
    def __eq__(self, _):
        return True


class NeverEqual:
    def __eq__(self, _):
        return False


class AlwaysLarger:
    def __lt__(self, _):
        return False

    def __le__(self, _):
        return False

    def __gt__(self, _):
        return True

    def __ge__(self, _):
        return True


class AlwaysSmaller:
    def __lt__(self, _):
        return True

    def __le__(self, _):
        return True

    def __gt__(self, _):
        return False

    def __ge__(self, _):
        return False


@contextmanager
def system_tz(name):
    # The system timezone is read on every call, so patching is enough
    with patch.dict(os.environ, {"TZ": name}):
        yield


@contextmanager
def system_tz_ams():
    with system_tz("Europe/Amsterdam"):
        yield
