"""Receipt scanning through a vision model"""
import base64
import json
import logging
import re
from typing import Optional

import pydantic
from openai import AsyncOpenAI, OpenAIError

from splitbill.config import get_settings
from splitbill.core.exceptions import UpstreamError, ValidationError
from splitbill.schemas.receipt import ScannedReceipt

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

RECEIPT_PROMPT = """Analyze this receipt image and extract all the information. Return a JSON object with the following structure:

{
  "items": [
    { "name": "Item name", "price": 12.99, "quantity": 1 }
  ],
  "subtotal": 45.99,
  "tax": 3.68,
  "total": 49.67
}

Rules:
1. Extract every line item with its name, price, and quantity
2. "price" must be the UNIT PRICE (price for ONE item), not the line total
   - If the receipt shows "2 Beers $16.00", return { "name": "Beer", "price": 8.00, "quantity": 2 }
   - line_total = price * quantity
3. If quantity is not shown, assume 1 (and price = line total)
4. Prices must be numbers, not strings
5. If subtotal/tax/total are not shown: subtotal = sum of price * quantity, tax = 0, total = subtotal + tax
6. Clean up item names (remove codes and abbreviations where possible)
7. Return ONLY the JSON object, no other text"""

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def parse_receipt_reply(text: Optional[str]) -> ScannedReceipt:
    """
    Extract and validate the receipt JSON from a model reply.

    Raises:
        UpstreamError: If the reply holds no usable receipt
    """
    if not text:
        raise UpstreamError("Receipt scanner returned an empty response")

    match = _JSON_OBJECT_RE.search(text)
    if not match:
        raise UpstreamError("Could not parse receipt data from response")

    try:
        data = json.loads(match.group(0))
        return ScannedReceipt.model_validate(data)
    except json.JSONDecodeError as e:
        raise UpstreamError("Receipt scanner returned malformed JSON", details=str(e))
    except pydantic.ValidationError as e:
        raise UpstreamError(
            "Receipt scanner returned unexpected data",
            details=e.errors(include_url=False, include_context=False),
        )


class ReceiptScanner:
    """Turns a receipt photo into line items, tax and totals"""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        settings = get_settings()
        self.model = model or settings.receipt_model
        self.max_tokens = settings.receipt_max_tokens
        self._client = client
        self._api_key = settings.openai_api_key

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise UpstreamError("Receipt scanning is not configured")
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def scan(self, image: bytes, mime_type: Optional[str] = None) -> ScannedReceipt:
        """
        Scan a receipt image.

        Args:
            image: Raw image bytes
            mime_type: Image content type, defaults to image/jpeg

        Returns:
            ScannedReceipt with unit prices

        Raises:
            ValidationError: If the image is empty or of an unsupported type
            UpstreamError: If the model call fails or its reply is unusable
        """
        mime_type = mime_type or "image/jpeg"
        if mime_type not in SUPPORTED_MIME_TYPES:
            raise ValidationError(f"Unsupported image type: {mime_type}")
        if not image:
            raise ValidationError("No receipt image provided")

        encoded = base64.b64encode(image).decode("ascii")
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": RECEIPT_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                            },
                        ],
                    }
                ],
            )
        except OpenAIError as e:
            logger.error("Receipt scan request failed: %s", e)
            raise UpstreamError("Failed to scan receipt")

        if not response.choices:
            raise UpstreamError("Receipt scanner returned no choices")

        receipt = parse_receipt_reply(response.choices[0].message.content)
        logger.info("Scanned receipt with %d items", len(receipt.items))
        return receipt
