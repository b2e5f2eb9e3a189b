from typing import Dict

MONTHS = {
    "en": ["January", "February", "March", "April", "May", "June", "July",
           "August", "September", "October", "November", "December"],
    "ar": ["يناير", "فبراير", "مارس", "أبريل", "مايو", "يونيو", "يوليو",
           "أغسطس", "سبتمبر", "أكتوبر", "نوفمبر", "ديسمبر"],
}

TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "en": {
        "now": "now",
        "minutes_ago": "{count} minutes ago",
        "hours_ago": "{count} hours ago",
        "days_ago": "{count} days ago",
        "today": "Today",
        "yesterday": "Yesterday",
        "network_error": "Could not reach the server. Please check that it is running.",
        "network_error_at": "Could not reach the server at {base_url}.",
        "invalid_input": "The submitted data is invalid. Please check all fields.",
        "duplicate_account": "The email or username is already registered.",
        "server_error": "Server error. Please try again later.",
        "login_failed": "Login failed",
        "register_failed": "Registration failed",
        "unknown_error": "Unknown error",
        "send_failed": "An error occurred while sending the message.\n\n{detail}\n\nPlease try again.",
        "send_without_project": "Error: a message cannot be sent without a project.",
    },
    "ar": {
        "now": "الآن",
        "minutes_ago": "منذ {count} دقيقة",
        "hours_ago": "منذ {count} ساعة",
        "days_ago": "منذ {count} يوم",
        "today": "اليوم",
        "yesterday": "أمس",
        "network_error": "خطأ في الاتصال بالخادم. يرجى التحقق من أن الخادم يعمل.",
        "network_error_at": "خطأ في الاتصال بالخادم. يرجى التحقق من أن الخادم يعمل على {base_url}",
        "invalid_input": "البيانات المدخلة غير صحيحة. يرجى التحقق من جميع الحقول.",
        "duplicate_account": "البريد الإلكتروني أو اسم المستخدم موجود مسبقاً.",
        "server_error": "خطأ في الخادم. يرجى المحاولة مرة أخرى لاحقاً.",
        "login_failed": "فشل تسجيل الدخول",
        "register_failed": "فشل إنشاء الحساب",
        "unknown_error": "خطأ غير معروف",
        "send_failed": "حدث خطأ أثناء إرسال الرسالة.\n\n{detail}\n\nيرجى المحاولة مرة أخرى.",
        "send_without_project": "خطأ: لا يمكن إرسال الرسالة بدون معرف المشروع",
    },
}


def translate(key: str, language: str = "en", **kwargs) -> str:
    """Look up a UI string, falling back to English for unknown languages."""
    table = TRANSLATIONS.get(language, TRANSLATIONS["en"])
    text = table.get(key, TRANSLATIONS["en"].get(key, key))
    return text.format(**kwargs) if kwargs else text


def month_name(month: int, language: str = "en") -> str:
    return MONTHS.get(language, MONTHS["en"])[month - 1]
