"""
Prompt construction for invoice extraction.

The prompt is a pure function of the document text: the same text always
produces the same prompt.
"""

INVOICE_SCHEMA = """{
  "vendor": {
    "name": "string (required)",
    "address": "string or null",
    "taxId": "string or null"
  },
  "invoice": {
    "number": "string (required)",
    "date": "string (YYYY-MM-DD, required)",
    "currency": "string or null (ISO code, e.g. USD)",
    "subtotal": "number or null",
    "taxPercent": "number or null",
    "total": "number or null",
    "poNumber": "string or null",
    "poDate": "string or null (YYYY-MM-DD)",
    "lineItems": [
      {
        "description": "string",
        "unitPrice": "number",
        "quantity": "number",
        "total": "number"
      }
    ]
  }
}"""

EXTRACTION_INSTRUCTIONS = f"""Extract invoice data from the provided text and return ONLY valid JSON in this exact format:
{INVOICE_SCHEMA}

Important:
- Return ONLY the JSON object, no other text, no markdown, no code fences
- Use exactly the field names shown above
- Use null for any optional field you cannot find; never omit fields and never invent values
- Ensure all numbers are numeric, not strings
- Keep line items in the order they appear in the document
- Use an empty list for lineItems if the document has no line items"""


def build_extraction_prompt(text: str) -> str:
    """Combine the fixed instructions with the extracted PDF text."""
    return f"{EXTRACTION_INSTRUCTIONS}\n\nPDF Content:\n{text}"
