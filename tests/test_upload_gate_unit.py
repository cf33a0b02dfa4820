# User value: This test keeps bad contract files from ever reaching the upload call.
import tempfile
import unittest
from pathlib import Path

from schemas.job_contract import MIME_DOCX, MIME_JPEG, MIME_PDF
from services.upload_gate import UploadedFile, guess_content_type, validate_upload

MB = 1024 * 1024


class UploadGateUnitTests(unittest.TestCase):
    def test_accepts_default_types_within_limit(self):
        for name, mime in (
            ("contract.pdf", MIME_PDF),
            ("contract.docx", MIME_DOCX),
            ("scan.png", "image/png"),
            ("scan.jpg", MIME_JPEG),
        ):
            out = validate_upload(UploadedFile(name=name, size=2 * MB, content_type=mime))
            self.assertTrue(out.valid, name)
            self.assertIsNone(out.reason)

    # User value: a missing selection is explained instead of silently ignored.
    def test_no_file_is_empty_selection(self):
        out = validate_upload(None)
        self.assertFalse(out.valid)
        self.assertEqual(out.reason, "empty_selection")
        self.assertEqual(out.message, "Please select a file")

    def test_zero_byte_file_is_empty_selection_not_too_large(self):
        out = validate_upload(UploadedFile(name="empty.pdf", size=0, content_type=MIME_PDF))
        self.assertEqual(out.reason, "empty_selection")

    def test_unsupported_type(self):
        out = validate_upload(UploadedFile(name="notes.txt", size=100, content_type="text/plain"))
        self.assertFalse(out.valid)
        self.assertEqual(out.reason, "unsupported_type")
        self.assertIn(".pdf", out.message)

    # User value: an 11 MB file is refused against the 10 MB ceiling.
    def test_oversized_file_is_too_large(self):
        out = validate_upload(UploadedFile(name="big.pdf", size=11 * MB, content_type=MIME_PDF))
        self.assertFalse(out.valid)
        self.assertEqual(out.reason, "too_large")
        self.assertEqual(out.message, "File is too large. Maximum size is 10MB")

    def test_exactly_at_limit_is_accepted(self):
        out = validate_upload(UploadedFile(name="edge.pdf", size=10 * MB, content_type=MIME_PDF))
        self.assertTrue(out.valid)

    def test_custom_allowed_types_and_limit(self):
        f = UploadedFile(name="scan.png", size=3 * MB, content_type="image/png")
        self.assertEqual(validate_upload(f, allowed_types=(MIME_PDF,)).reason, "unsupported_type")
        self.assertEqual(validate_upload(f, max_size_bytes=MB).reason, "too_large")

    def test_validation_is_repeatable(self):
        f = UploadedFile(name="big.pdf", size=11 * MB, content_type=MIME_PDF)
        first = validate_upload(f)
        second = validate_upload(f)
        self.assertEqual((first.valid, first.reason), (second.valid, second.reason))

    def test_content_type_guessed_from_extension(self):
        self.assertEqual(guess_content_type("Contract.PDF"), MIME_PDF)
        self.assertEqual(guess_content_type("photo.jpeg"), MIME_JPEG)
        self.assertEqual(guess_content_type("archive.zip"), "")
        self.assertEqual(UploadedFile.from_bytes("a.docx", b"x").content_type, MIME_DOCX)

    def test_from_path_reads_lazily_and_release_drops_bytes(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "vendor.pdf"
            path.write_bytes(b"%PDF-1.4 test")
            f = UploadedFile.from_path(path)
            self.assertEqual(f.size, len(b"%PDF-1.4 test"))
            self.assertEqual(f.read(), b"%PDF-1.4 test")

        mem = UploadedFile.from_bytes("a.pdf", b"abc")
        mem.release()
        self.assertEqual(mem.read(), b"")


if __name__ == "__main__":
    unittest.main()
