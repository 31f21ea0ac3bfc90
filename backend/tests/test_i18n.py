"""Locale negotiation and message catalogs."""

from taskme.exceptions import NotFoundError, ValidationError
from taskme.i18n import CATALOGS, negotiate_locale, resolve_locale, translate


def test_catalogs_have_the_same_keys():
    assert set(CATALOGS["ar"]) == set(CATALOGS["en"])


def test_default_locale_is_arabic():
    assert resolve_locale(None) == "ar"
    assert resolve_locale("fr") == "ar"


def test_region_suffix_is_ignored():
    assert resolve_locale("en-US") == "en"


def test_negotiate_prefers_highest_quality():
    assert negotiate_locale("fr;q=1.0, en;q=0.8, ar;q=0.5") == "en"
    assert negotiate_locale("en;q=0.3, ar") == "ar"


def test_negotiate_falls_back_on_unsupported_or_missing():
    assert negotiate_locale("de, fr") == "ar"
    assert negotiate_locale(None) == "ar"
    assert negotiate_locale("en;q=abc, ar;q=0.1") == "ar"


def test_translate_interpolates():
    assert translate("reminder_body", "ar", title="اجتماع") == "اقترب موعد المهمة: اجتماع"
    assert translate("share_notification", "en", title="Trip") == 'The task "Trip" was shared with you'


def test_unknown_key_is_returned_verbatim():
    assert translate("no_such_key", "en") == "no_such_key"


def test_errors_localize():
    error = NotFoundError("task_not_found")
    assert error.localized("en") == "Task not found"
    assert error.localized("ar") == "المهمة غير موجودة"
    assert error.status_code == 404
    assert ValidationError("duplicate_task_time").status_code == 422
