# User value: This test makes sure only valid, unique, reviewed contract data is ever submitted.
import asyncio
import unittest

from schemas.responses import ContractExtractionData, NameCheckResponse, VendorCreationResult
from services.errors import ApiHttpError, ReviewSubmissionError, ReviewValidationError
from services.extraction_review import ExtractionReviewForm
from services.name_check import NameUniquenessChecker

UNIQUE = NameCheckResponse(is_unique=True)


async def instant_sleep(_seconds):
    await asyncio.sleep(0)


class FakeClient:
    def __init__(self, name_answer=UNIQUE):
        self.name_answer = name_answer
        self.fail_with = None
        self.calls = []

    async def check_vendor_name(self, name):
        self.calls.append(("check", name))
        return self.name_answer

    async def create_vendor_from_contract(self, request):
        self.calls.append(("create", request))
        if self.fail_with is not None:
            raise self.fail_with
        return VendorCreationResult(vendor_id="V9", contract_id="C9")

    async def update_vendor(self, vendor_id, update):
        self.calls.append(("update", vendor_id, update))
        if self.fail_with is not None:
            raise self.fail_with
        return None

    async def confirm_contract_replacement(self, vendor_id, request):
        self.calls.append(("replace", vendor_id, request))
        return VendorCreationResult(vendor_id=vendor_id, contract_id="C-new")


def _extraction(**overrides) -> ContractExtractionData:
    data = {
        "primary_vendor_name": "Acme Co",
        "effective_date": "2024-01-01",
        "contract_reconciliation_summary": "Unit price $12.50, net 30.",
    }
    data.update(overrides)
    return ContractExtractionData(**data)


def _form(client, *, mode="create", vendor_id=None, **extraction) -> ExtractionReviewForm:
    checker = NameUniquenessChecker(
        client.check_vendor_name,
        sleep=instant_sleep,
        ignore_vendor_id=vendor_id if mode == "replace" else None,
    )
    return ExtractionReviewForm(
        client,
        job_id="J1",
        extraction=_extraction(**extraction),
        mode=mode,
        vendor_id=vendor_id,
        name_checker=checker,
    )


class ExtractionReviewUnitTests(unittest.TestCase):
    def test_prefilled_from_extraction_and_summary_read_only(self):
        form = _form(FakeClient())
        self.assertEqual(form.state.primary_vendor_name, "Acme Co")
        self.assertEqual(form.state.effective_date, "2024-01-01")
        self.assertEqual(form.contract_reconciliation_summary, "Unit price $12.50, net 30.")
        self.assertNotIn("contract_reconciliation_summary", form.values())
        with self.assertRaises(KeyError):
            form.set_field("contract_reconciliation_summary", "edited")

    # User value: a duplicate vendor name blocks submit and names the clash.
    def test_duplicate_name_blocks_submit(self):
        client = FakeClient(NameCheckResponse(is_unique=False, existing_vendor_id="V1"))

        async def run_case():
            form = _form(client, primary_vendor_name="Acme Corp")
            form.start()
            await form.name_check.wait()
            self.assertFalse(form.can_submit)
            self.assertIn("Acme Corp", form.name_error)
            self.assertIn("V1", form.name_error)
            with self.assertRaises(ReviewValidationError) as ctx:
                await form.submit()
            self.assertEqual(ctx.exception.error_code, "DUPLICATE_NAME")

        asyncio.run(run_case())
        self.assertFalse([c for c in client.calls if c[0] == "create"])

    def test_submit_blocked_while_checking(self):
        client = FakeClient()

        async def run_case():
            form = _form(client)
            form.start()
            self.assertEqual(form.name_check.status, "checking")
            self.assertFalse(form.can_submit)
            with self.assertRaises(ReviewValidationError) as ctx:
                await form.submit()
            self.assertEqual(ctx.exception.error_code, "NAME_CHECK_PENDING")
            form.close()

        asyncio.run(run_case())

    def test_field_errors(self):
        form = _form(FakeClient(), primary_vendor_name="A", effective_date="", renewal_end_date="13/45/2024")
        errors = form.validate()
        self.assertIn("primary_vendor_name", errors)
        self.assertEqual(errors["effective_date"], "Effective date is required")
        self.assertIn("renewal_end_date", errors)
        self.assertFalse(form.can_submit)

    def test_renewal_before_effective_is_allowed(self):
        form = _form(FakeClient(), effective_date="2024-06-01", renewal_end_date="2023-06-01")
        self.assertEqual(form.validate(), {})

    # User value: the server receives one clean date format and no blank optional fields.
    def test_create_submits_normalized_payload(self):
        client = FakeClient()

        async def run_case():
            form = _form(client)
            form.set_field("effective_date", "01/15/2024")
            form.set_field("dba_display_name", "   ")
            form.set_field("category", "Software")
            form.start()
            await form.name_check.wait()
            self.assertTrue(form.can_submit)
            result = await form.submit()
            self.assertEqual(result.contract_id, "C9")

        asyncio.run(run_case())
        create_calls = [c for c in client.calls if c[0] == "create"]
        self.assertEqual(len(create_calls), 1)
        request = create_calls[0][1]
        self.assertEqual(request.effective_date, "2024-01-15")
        self.assertIsNone(request.dba_display_name)
        self.assertEqual(request.category, "Software")
        self.assertEqual(request.job_id, "J1")

    # User value: replacing a contract returns the real new contract id from the server.
    def test_replace_updates_vendor_then_confirms(self):
        client = FakeClient(NameCheckResponse(is_unique=False, existing_vendor_id="V1"))

        async def run_case():
            form = _form(client, mode="replace", vendor_id="V1", dba_display_name="Acme", category="Logistics")
            form.start()
            await form.name_check.wait()
            self.assertEqual(form.name_check.status, "unique")
            result = await form.submit()
            self.assertEqual(result.vendor_id, "V1")
            self.assertEqual(result.contract_id, "C-new")

        asyncio.run(run_case())
        kinds = [c[0] for c in client.calls]
        self.assertEqual(kinds[-2:], ["update", "replace"])
        update = client.calls[-2][2]
        self.assertEqual(update.name, "Acme Co")
        self.assertEqual(update.canonical_name, "Acme")
        self.assertEqual(update.business_description, "Logistics")

    def test_server_error_is_named_and_form_keeps_values(self):
        client = FakeClient()
        client.fail_with = ApiHttpError("Vendor service unavailable", status_code=503, error_code="HTTP_503")

        async def run_case():
            form = _form(client)
            form.start()
            await form.name_check.wait()
            with self.assertRaises(ReviewSubmissionError) as ctx:
                await form.submit()
            self.assertEqual(ctx.exception.error_code, "HTTP_503")
            self.assertEqual(form.submit_error, "Vendor service unavailable")
            self.assertEqual(form.state.primary_vendor_name, "Acme Co")
            self.assertFalse(form.submitting)

        asyncio.run(run_case())
        self.assertEqual(len([c for c in client.calls if c[0] == "create"]), 1)

    def test_replace_requires_vendor_id(self):
        with self.assertRaises(ValueError):
            ExtractionReviewForm(FakeClient(), job_id="J1", extraction=_extraction(), mode="replace")


if __name__ == "__main__":
    unittest.main()
