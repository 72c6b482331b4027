# tests/test_numbering.py
import random
import re
from datetime import date

from invoicing.services.invoices import invoice_service
from invoicing.services.numbering import INVOICE_PREFIX, QUOTE_PREFIX, generate_reference

REFERENCE = re.compile(r"^(FACT|DEVIS)-[0-9a-f-]{6}-\d{6}-\d{3}$")


def test_reference_layout():
    ref = generate_reference(INVOICE_PREFIX, "3f9a2c7e-0000-4000-8000-000000000000", date(2026, 2, 5),
                             rng=random.Random(7))
    assert ref.startswith("FACT-3f9a2c-202602-")
    assert REFERENCE.match(ref)


def test_quote_prefix_and_zero_padding():
    class Low:
        def randrange(self, n):
            return 4

    ref = generate_reference(QUOTE_PREFIX, "abcdef123", date(2026, 11, 30), rng=Low())
    assert ref == "DEVIS-abcdef-202611-004"


def test_engine_draws_again_on_clash(app, org, monkeypatch, make_invoice):
    first = make_invoice()

    drawn = iter([first.invoice_number, first.invoice_number, "FACT-xxxxxx-202603-999"])
    monkeypatch.setattr(
        "invoicing.services.documents.generate_reference",
        lambda prefix, organization_id, issued_on: next(drawn),
    )

    second = make_invoice()
    assert second.invoice_number == "FACT-xxxxxx-202603-999"
    assert invoice_service.get_with_details(first.id, org.id).invoice_number != second.invoice_number
