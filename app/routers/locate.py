from fastapi import APIRouter, Request
from pydantic import ValidationError

from app.errors import ReportValidationError
from app.models import LocateRequest, LocateResponse
from app.services.locate import area_label, locate_label

router = APIRouter()


@router.post("/locate", response_model=LocateResponse, summary="Approximate label for a GPS fix")
async def locate(request: Request):
    try:
        req = LocateRequest.model_validate_json(await request.body())
    except ValidationError:
        raise ReportValidationError("invalid JSON")
    return LocateResponse(
        label=locate_label(req.lat, req.lng),
        area_label=area_label(req.lat, req.lng, req.accuracy_m),
    )
