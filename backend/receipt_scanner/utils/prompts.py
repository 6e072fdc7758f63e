"""Default prompt used by the structured vision backend.

Keeping the prompt in a central location makes it easier to iterate on
its content without touching the backend code.  The field names match
``ReceiptDetails`` so the model's JSON can be coerced directly.
"""

from __future__ import annotations

from textwrap import dedent


def get_default_extraction_prompt() -> str:
    """Return the instruction sent alongside the receipt image.

    The model is asked for a bare JSON object; anything it cannot read
    should be left out rather than guessed, because missing fields are
    filled with defaults during coercion.
    """
    return dedent(
        """
        Extract the following information from this receipt image and
        return ONLY a valid JSON object, with no markdown and no commentary:

        {
          "date": "extracted date in YYYY-MM-DD format",
          "currency": "3-letter currency code (USD, EUR, CHF, etc.)",
          "vendor_name": "store/business name",
          "receipt_items": [
            {"item_name": "item name", "item_cost": price}
          ],
          "tax": tax_amount,
          "total": total_amount
        }

        Rules:
        - item_cost, tax and total must be plain numbers (no currency symbols).
        - List every purchased line item; do not include subtotal, tax or
          total rows as items.
        - If the tax is not printed on the receipt use 0.
        - If a value is not visible, omit the field instead of guessing.
        """
    ).strip()
