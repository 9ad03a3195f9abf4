from django.test import TestCase

from configmgr.models import SystemSetting
from configmgr.settings_store import CHECKIN_EARLY_MINUTES, REMINDER_LEAD_MINUTES, get_int


class SettingsStoreTests(TestCase):
    def test_defaults_when_missing(self):
        self.assertEqual(get_int(CHECKIN_EARLY_MINUTES), 30)
        self.assertEqual(get_int(REMINDER_LEAD_MINUTES), 30)
        self.assertEqual(get_int("SOMETHING_ELSE", default=5), 5)

    def test_stored_value_wins(self):
        SystemSetting.objects.create(key=CHECKIN_EARLY_MINUTES, value=" 45 ")
        self.assertEqual(get_int(CHECKIN_EARLY_MINUTES), 45)

    def test_bad_values_fall_back(self):
        SystemSetting.objects.create(key=CHECKIN_EARLY_MINUTES, value="soon")
        SystemSetting.objects.create(key=REMINDER_LEAD_MINUTES, value="-10")
        with self.assertLogs("configmgr.settings_store", level="WARNING"):
            self.assertEqual(get_int(CHECKIN_EARLY_MINUTES), 30)
        with self.assertLogs("configmgr.settings_store", level="WARNING"):
            self.assertEqual(get_int(REMINDER_LEAD_MINUTES), 30)

    def test_keys_are_normalized(self):
        SystemSetting.objects.create(key=" reminder_lead_minutes ", value="15")
        self.assertEqual(get_int(REMINDER_LEAD_MINUTES), 15)
