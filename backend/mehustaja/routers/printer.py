"""Label printer router.

Endpoints:
    POST  /api/printer/print-pouch   Print one pouch label on the Videojet
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from mehustaja.adapters.printer import VideojetPrinter
from mehustaja.deps import get_printer
from mehustaja.schemas.printer import PrintPouchRequest, PrintPouchResponse

router = APIRouter()


@router.post("/print-pouch", response_model=PrintPouchResponse)
async def print_pouch(
    body: PrintPouchRequest,
    printer: VideojetPrinter = Depends(get_printer),
):
    """Send a pouch label (customer name + production date) to the printer.

    ``outcome`` is ``confirmed`` when the printer acknowledged the job and
    ``assumed_ok`` when it stayed silent; only ``failed`` answers 502.
    """
    result = await printer.print_pouch(body.customer.strip(), body.production_date.strip())
    response = PrintPouchResponse(
        ok=result.ok,
        outcome=result.outcome.value,
        host=result.host,
        port=result.port,
        sent=result.sent,
        replies=result.replies,
        error=result.error,
    )
    if not result.ok:
        return JSONResponse(status_code=502, content=response.model_dump())
    return response
