"""
Stress tests for thread-safety of marshaling, unmarshaling,
and the timezone caches they rely on.

Note this isn't a unit test, because it relies on a clean cache
"""

import sys
import time
from os import environ
from threading import Thread

from toki import TIMESTAMP, DateTime, LayoutedInstant, Timestamp

if not hasattr(sys, "_is_gil_enabled") or sys._is_gil_enabled():
    # Running with GIL enabled can still be useful to compare performance,
    # but be sure to warn that threading hasn't been stress tested.
    print("WARNING: Running with GIL enabled. Threading not stress tested.")


DT = DateTime(2024, 6, 15, 12, 0, tz="UTC")
NUM_THREADS = 16
NUM_ITERATIONS = 500
TIMEZONE_SAMPLE = [
    "UTC",
    "America/Los_Angeles",
    "Europe/Amsterdam",
    "Asia/Kathmandu",
    "Australia/Lord_Howe",
    "Pacific/Chatham",
    "America/St_Johns",
    "Africa/Casablanca",
    "Asia/Tehran",
    "America/Sao_Paulo",
    "Europe/Dublin",
    "Pacific/Kiritimati",
    "Etc/GMT+12",
    "Asia/Kolkata",
    "America/Caracas",
    "Antarctica/Troll",
    "Europe/Moscow",
    "Pacific/Apia",
    "Africa/Juba",
    "America/Nuuk",
    "Asia/Pyongyang",
]
assert (
    len(TIMEZONE_SAMPLE) % NUM_THREADS
), "Timezone sample should not be evenly divisible by number of threads"
TZS = TIMEZONE_SAMPLE * (NUM_THREADS * NUM_ITERATIONS)


def roundtrip_rfc3339(tzs):
    """Marshal in a timezone, and read it back"""
    decoded = LayoutedInstant()
    for tz in tzs:
        d = LayoutedInstant(DT.to_tz(tz))
        decoded.unmarshal_json(d.marshal_json())
        assert decoded == DT


def unmarshal_timestamps(tzs):
    """Decode epoch seconds into a timezone"""
    for tz in tzs:
        t = Timestamp()
        t.unmarshal_json(b"1718452800", tz=tz)
        assert t == DT


def system_tz_timestamps(tzs):
    """Decode epoch seconds into the system timezone, while it changes"""
    for tz in tzs:
        environ["TZ"] = tz
        d = LayoutedInstant(layout=TIMESTAMP)
        d.unmarshal_text(b"1718452800")
        assert d == DT


def main(func):
    print(f"Starting test: {func.__name__}")
    threads = []

    start_time = time.time()

    for n in range(NUM_THREADS):
        thread = Thread(target=func, args=(TZS[n::NUM_THREADS],))
        threads.append(thread)
        thread.start()

    for thread in threads:
        thread.join()

    end_time = time.time()
    print(f"Execution time: {end_time - start_time:.2f} seconds")


if __name__ == "__main__":
    main(roundtrip_rfc3339)
    main(unmarshal_timestamps)
    main(system_tz_timestamps)
