"""Localized user-facing strings.

Every message that can reach an end user (error details, notification
texts, push payloads, alerts) is looked up here by key. Arabic is the
primary catalog; English is kept complete for API clients that ask for it.
"""

from taskme.config import get_settings

SUPPORTED_LOCALES = ("ar", "en")

CATALOGS: dict[str, dict[str, str]] = {
    "ar": {
        # Errors
        "not_authenticated": "يجب تسجيل الدخول أولاً",
        "invalid_token": "رمز الدخول غير صالح أو منتهي الصلاحية",
        "invalid_credentials": "البريد الإلكتروني أو كلمة المرور غير صحيحة",
        "email_in_use": "البريد الإلكتروني مستخدم بالفعل",
        "weak_password": "كلمة المرور ضعيفة جدًا",
        "phone_required": "يرجى إدخال رقم الهاتف",
        "name_required": "يرجى إدخال الاسم",
        "task_not_found": "المهمة غير موجودة",
        "message_not_found": "الرسالة غير موجودة",
        "user_not_found": "المستخدم غير موجود",
        "notification_not_found": "الإشعار غير موجود",
        "not_task_owner": "فقط مالك المهمة يمكنه تنفيذ هذا الإجراء",
        "not_task_participant": "ليس لديك صلاحية الوصول إلى هذه المهمة",
        "not_message_sender": "لا يمكنك حذف هذه الرسالة",
        "title_required": "يرجى إدخال عنوان المهمة",
        "content_required": "لا يمكن إرسال رسالة فارغة",
        "duplicate_task_time": "يوجد لديك مهمة أخرى في نفس اليوم والساعة والدقيقة! يرجى اختيار وقت مختلف.",
        "invalid_date_time": "صيغة التاريخ والوقت غير صحيحة",
        "invalid_status": "حالة المهمة غير صالحة",
        "cannot_share_with_owner": "لا يمكن مشاركة المهمة مع مالكها",
        "push_token_missing": "لا يوجد FCM Token لهذا المستخدم",
        "push_failed": "فشل في إرسال الإشعار",
        "tasks_unavailable": "حدث خطأ أثناء جلب المهام",
        "internal_error": "حدث خطأ غير متوقع",
        # Notification and chat texts
        "default_user_name": "مستخدم",
        "share_notification": "تمت مشاركة مهمة \"{title}\" معك",
        "share_announcement": "تمت مشاركة هذه المهمة مع {name}",
        "reminder_title": "تذكير بالمهمة",
        "reminder_body": "اقترب موعد المهمة: {title}",
        "new_message_title": "رسالة جديدة",
        "new_message_body": "{sender}: {preview}",
        # Alerts
        "alert_task_added": "تمت إضافة مهمة جديدة!",
        "alert_task_completed": "تم اكتمال مهمة بنجاح!",
        "alert_reminder_due": "اقترب موعد المهمة: {title}",
        "alert_overdue": "المهمة متأخرة: {title}",
    },
    "en": {
        "not_authenticated": "You need to sign in first",
        "invalid_token": "The access token is invalid or expired",
        "invalid_credentials": "Incorrect e-mail or password",
        "email_in_use": "This e-mail address is already registered",
        "weak_password": "The password is too weak",
        "phone_required": "Please enter a phone number",
        "name_required": "Please enter your name",
        "task_not_found": "Task not found",
        "message_not_found": "Message not found",
        "user_not_found": "User not found",
        "notification_not_found": "Notification not found",
        "not_task_owner": "Only the task owner can do this",
        "not_task_participant": "You do not have access to this task",
        "not_message_sender": "You cannot delete this message",
        "title_required": "Please enter a task title",
        "content_required": "Cannot send an empty message",
        "duplicate_task_time": "You already have another task at the same date and time. Please pick a different time.",
        "invalid_date_time": "Invalid date and time",
        "invalid_status": "Invalid task status",
        "cannot_share_with_owner": "A task cannot be shared with its owner",
        "push_token_missing": "This user has no registered push token",
        "push_failed": "Failed to send the notification",
        "tasks_unavailable": "Could not load tasks",
        "internal_error": "Something went wrong",
        "default_user_name": "User",
        "share_notification": "The task \"{title}\" was shared with you",
        "share_announcement": "This task was shared with {name}",
        "reminder_title": "Task reminder",
        "reminder_body": "Your task is coming up: {title}",
        "new_message_title": "New message",
        "new_message_body": "{sender}: {preview}",
        "alert_task_added": "A new task was added!",
        "alert_task_completed": "A task was completed!",
        "alert_reminder_due": "Task coming up: {title}",
        "alert_overdue": "Task overdue: {title}",
    },
}


def resolve_locale(locale: str | None = None) -> str:
    """Return a supported locale, falling back to the configured default."""
    if locale:
        short = locale.strip().lower()[:2]
        if short in SUPPORTED_LOCALES:
            return short
    return get_settings().default_locale


def negotiate_locale(accept_language: str | None) -> str:
    """Pick the best supported locale from an Accept-Language header."""
    if not accept_language:
        return resolve_locale()

    candidates: list[tuple[float, str]] = []
    for part in accept_language.split(","):
        lang, _, params = part.strip().partition(";")
        quality = 1.0
        if params.strip().startswith("q="):
            try:
                quality = float(params.strip()[2:])
            except ValueError:
                quality = 0.0
        short = lang.strip().lower()[:2]
        if short in SUPPORTED_LOCALES:
            candidates.append((quality, short))

    if not candidates:
        return resolve_locale()
    # max() keeps the first of equal-quality entries
    return max(candidates, key=lambda c: c[0])[1]


def translate(key: str, locale: str | None = None, **params: object) -> str:
    """Look up a message by key and interpolate keyword parameters."""
    catalog = CATALOGS[resolve_locale(locale)]
    template = catalog.get(key) or CATALOGS["en"].get(key, key)
    if params:
        return template.format(**params)
    return template
