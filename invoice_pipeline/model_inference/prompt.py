"""
LLM prompt for invoice field extraction.

The JSON keys below are a fixed contract with the hosted model and with
``response_parser``; change them in both places or not at all.
"""

RESPONSE_KEYS = (
    "invoice_number",
    "amount",
    "party_name",
    "party_address",
    "currency",
    "confidence",
)

SYSTEM_PROMPT = (
    "You are an expert at reading invoices. You extract fields exactly as "
    "they appear in the document and reply with a single JSON object only."
)

_EXTRACTION_TEMPLATE = """Extract the following fields from the invoice text below.

Return ONLY a JSON object with exactly these keys:
{{
  "invoice_number": "invoice number or ID as printed",
  "amount": "final total amount exactly as written in the text",
  "party_name": "name of the billed party (client/customer)",
  "party_address": "full address of the billed party",
  "currency": "ISO 4217 currency code, e.g. USD, EUR, INR",
  "confidence": 0.0
}}

Rules:
- Copy the amount exactly as it appears. Do not normalize or reformat it.
- Do not calculate or sum anything. If several totals appear, use the final payable total.
- Use null for any field that is not present in the text.
- Set "confidence" to your own estimate between 0 and 1 of how accurate the extraction is.
- Return only the JSON object, with no explanation and no markdown.

Invoice text:
\"\"\"
{ocr_text}
\"\"\"
"""


def build_extraction_prompt(ocr_text: str) -> str:
    """Render the user message for one OCR text."""
    return _EXTRACTION_TEMPLATE.format(ocr_text=ocr_text.strip())
