import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from service.units import bytes_to_human, format_connections, format_data_limit, format_expire_time


@pytest.mark.parametrize("value,expected", [
    (None, "N/A"),
    (0, "0 B"),
    (512, "512.00 B"),
    (1536, "1.50 KiB"),
    (1073741824, "1.00 GiB"),
])
def test_bytes_to_human_iec(value, expected):
    assert bytes_to_human(value) == expected


def test_bytes_to_human_si():
    assert bytes_to_human(1500, system="SI") == "1.50 KB"


def test_zero_limits_mean_unlimited():
    assert format_data_limit(0) == "unlimited"
    assert format_connections(0) == "unlimited"
    assert format_expire_time(0) == "never"


@pytest.mark.parametrize("seconds,expected", [
    (2592000, "30d"),
    (90061, "1d 1h 1m 1s"),
    (3600, "1h"),
    (45, "45s"),
])
def test_format_expire_time(seconds, expected):
    assert format_expire_time(seconds) == expected
