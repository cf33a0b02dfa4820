import unittest
from datetime import date

from services.field_validation import validate_date, validate_vendor_name


class FieldValidationUnitTests(unittest.TestCase):
    def test_date_formats_normalize_to_iso(self):
        self.assertEqual(validate_date("2024-01-01").formatted, "2024-01-01")
        self.assertEqual(validate_date("03/15/2024").formatted, "2024-03-15")

    def test_invalid_calendar_date_rejected(self):
        out = validate_date("02/30/2024")
        self.assertFalse(out.valid)
        self.assertIn("valid date", out.error)

    def test_garbage_rejected(self):
        self.assertFalse(validate_date("next tuesday").valid)
        self.assertFalse(validate_date("2024/01/01").valid)

    def test_optional_blank_is_valid_required_blank_is_not(self):
        self.assertTrue(validate_date("").valid)
        self.assertIsNone(validate_date(None).formatted)
        self.assertFalse(validate_date("  ", required=True).valid)

    # User value: catches typo years before they land on a contract.
    def test_range_limits(self):
        today = date(2024, 6, 1)
        self.assertFalse(validate_date("1989-12-31", today=today).valid)
        self.assertTrue(validate_date("1990-01-01", today=today).valid)
        self.assertTrue(validate_date("2074-12-31", today=today).valid)
        self.assertFalse(validate_date("2075-01-01", today=today).valid)

    def test_vendor_name_rules(self):
        self.assertTrue(validate_vendor_name("  Acme Co ").valid)
        self.assertEqual(validate_vendor_name("  Acme Co ").formatted, "Acme Co")
        self.assertFalse(validate_vendor_name("").valid)
        self.assertFalse(validate_vendor_name(" A ").valid)
        self.assertFalse(validate_vendor_name("x" * 256).valid)
        self.assertFalse(validate_vendor_name("Acme <script>").valid)
        self.assertTrue(validate_vendor_name("", required=False).valid)


if __name__ == "__main__":
    unittest.main()
