"""Receipt scan endpoint"""
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from splitbill.api.deps import get_receipt_scanner
from splitbill.config import get_settings
from splitbill.core.exceptions import UpstreamError, ValidationError
from splitbill.schemas.receipt import ScannedReceipt
from splitbill.services.receipt_scanner import ReceiptScanner

router = APIRouter(prefix="/receipts", tags=["Receipts"])


@router.post("/scan", response_model=ScannedReceipt)
async def scan_receipt(
    receipt: UploadFile = File(..., description="Receipt photo"),
    scanner: ReceiptScanner = Depends(get_receipt_scanner)
):
    """
    Extract line items, tax and totals from a receipt photo.

    Prices in the result are unit prices. The data is only a starting point
    for the bill form; a failed scan should fall back to manual entry.

    Raises:
        400: If no image, an empty image or an unsupported type is sent
        413: If the image is too large
        502: If the scanner fails or returns unusable data
    """
    max_bytes = get_settings().max_receipt_bytes
    # One byte past the limit is enough to tell an oversized upload
    image = await receipt.read(max_bytes + 1)
    if len(image) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Receipt image is too large"
        )

    try:
        return await scanner.scan(image, receipt.content_type)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )
    except UpstreamError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message
        )
