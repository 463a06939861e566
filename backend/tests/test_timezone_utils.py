"""
时区工具单元测试
覆盖：UTC 获取、时区转换、天数计算
"""

from datetime import datetime, timezone, timedelta

from utils.timezone import UTC, utc_now, to_utc, days_since


class TestUtcNow:
    """获取 UTC 时间测试"""

    def test_has_utc_timezone(self):
        """测试包含 UTC 时区信息"""
        now = utc_now()
        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)

    def test_close_to_current_time(self):
        """测试返回时间接近当前时间"""
        diff = abs((utc_now() - datetime.now(timezone.utc)).total_seconds())
        assert diff < 2


class TestToUtc:
    """时间转换为 UTC 测试"""

    def test_none_input(self):
        assert to_utc(None) is None

    def test_naive_is_treated_as_utc(self):
        """不带时区的时间按 UTC 解释，数值不变"""
        naive = datetime(2024, 9, 1, 8, 30)
        result = to_utc(naive)
        assert result.tzinfo == UTC
        assert result.hour == 8

    def test_offset_is_converted(self):
        """带偏移的时间换算为 UTC"""
        plus_eight = timezone(timedelta(hours=8))
        local = datetime(2024, 9, 1, 8, 30, tzinfo=plus_eight)
        result = to_utc(local)
        assert result == datetime(2024, 9, 1, 0, 30, tzinfo=UTC)
        assert result.utcoffset() == timedelta(0)

    def test_utc_is_unchanged(self):
        value = datetime(2024, 9, 1, tzinfo=UTC)
        assert to_utc(value) == value


class TestDaysSince:
    """距今天数测试"""

    def test_none_is_zero(self):
        assert days_since(None) == 0

    def test_rounds_down(self):
        now = datetime(2024, 9, 10, 12, 0, tzinfo=UTC)
        assert days_since(now - timedelta(days=3, hours=23), now) == 3
        assert days_since(now - timedelta(hours=5), now) == 0

    def test_future_is_negative(self):
        now = datetime(2024, 9, 10, tzinfo=UTC)
        assert days_since(now + timedelta(days=2), now) == -2

    def test_mixed_naive_and_aware(self):
        now = datetime(2024, 9, 10, tzinfo=UTC)
        assert days_since(datetime(2024, 9, 3), now) == 7
