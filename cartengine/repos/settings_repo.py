# cartengine/repos/settings_repo.py
from sqlalchemy.orm import Session

from cartengine.data.models.setting import SettingModel
from cartengine.utils.settings import DEFAULT_CURRENCY, DEFAULT_LOW_STOCK_THRESHOLD


class SettingsRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_setting(self, key: str) -> str | None:
        row = self.db.get(SettingModel, key)
        return row.value if row else None

    def get_currency(self) -> str:
        value = (self.get_setting("currency") or "").strip()
        return value.upper() if value else DEFAULT_CURRENCY

    def get_low_stock_threshold(self) -> int:
        # brak / smieci -> domyslny prog, zawsze >= 1
        raw = self.get_setting("low_stock_threshold")
        try:
            value = int(float(raw))
        except (TypeError, ValueError, OverflowError):
            return DEFAULT_LOW_STOCK_THRESHOLD
        return max(1, value)
