from datetime import UTC, date, datetime


class Datetime:
    """
    时间工具：库内时间一律为带时区的 UTC

    分配有效期按日期判定（含首尾两天），当日取 UTC 日期。
    """

    @staticmethod
    def now() -> datetime:
        return datetime.now(UTC)

    @staticmethod
    def today() -> date:
        return Datetime.now().date()

    @staticmethod
    def ensure_aware(dt: datetime) -> datetime:
        """
        naive datetime 视为 UTC
        SQLite 读回的 DateTime(timezone=True) 不带时区，排序前需统一
        """
        if dt.tzinfo is None:
            return dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)

    @staticmethod
    def in_window(day: date, start: date | None, end: date | None) -> bool:
        """day 是否落在 [start, end]，缺失的一端视为不设限"""
        if start is not None and day < start:
            return False
        if end is not None and day > end:
            return False
        return True
