from datetime import datetime, timezone

import snowcord


def test_snowflake_time():
    created_at = snowcord.snowflake_time(175928847299117063)

    assert created_at.tzinfo is not None
    assert (created_at.year, created_at.month, created_at.day) == (2016, 4, 30)
    assert (created_at.hour, created_at.minute, created_at.second) == (11, 18, 25)
    assert created_at.microsecond == 796000

    assert snowcord.snowflake_timestamp(175928847299117063) == 1462015105.796


def test_time_snowflake():
    dt = datetime(2016, 4, 30, 11, 18, 25, 796000, tzinfo=timezone.utc)

    low = snowcord.time_snowflake(dt)
    high = snowcord.time_snowflake(dt, high=True)

    assert low == 175928847298985984
    assert high == low + 2**22 - 1
    assert low <= 175928847299117063 <= high

    # Naive datetimes are UTC
    assert snowcord.time_snowflake(dt.replace(tzinfo=None)) == low

    assert snowcord.time_snowflake(datetime(2015, 1, 1, tzinfo=timezone.utc)) == 0


def test_parse_snowflake():
    assert snowcord.parse_snowflake('81384788765712384') == 81384788765712384
    assert snowcord.parse_optional_snowflake(None) is None
    assert snowcord.resolve_id(5) == 5
