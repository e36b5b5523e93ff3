"""Error types raised across the inventory engine, plus the user-facing messages."""

# User-facing strings, shown as-is by the app (Arabic UI).
MESSAGES = {
    "load_failed": "فشل في تحميل بيانات المخزون",
    "save_failed": "فشل حفظ بيانات المخزون",
    "add_failed": "فشل حفظ الصنف الجديد",
    "update_failed": "فشل حفظ تحديث الصنف",
    "delete_failed": "فشل حذف الصنف",
    "rollover_failed": "فشل نقل الرصيد للشهر التالي",
    "name_required": "اسم الصنف مطلوب",
    "negative_opening": "الرصيد الافتتاحي لا يمكن أن يكون سالب",
    "negative_unit_price": "سعر الوحدة لا يمكن أن يكون سالب",
    "no_pharmacy": "لا توجد صيدلية مرتبطة بالحساب",
}


class PharmStockError(Exception):
    """Base class; `message` is always safe to show to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ItemValidationError(PharmStockError):
    """An item failed the pre-save checks. The save is aborted."""


class PersistenceError(PharmStockError):
    """A load or save against the document store failed."""


class SessionError(PharmStockError):
    """The session does not carry a usable pharmacy scope."""
