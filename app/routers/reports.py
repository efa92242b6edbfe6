from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.deps import get_ingestion_service, get_query_service
from app.errors import UnsupportedContentType
from app.models import CreateReportResponse, ReportListResponse
from app.services.ingestion import JSONSubmission, MultipartSubmission, ReportIngestionService
from app.services.query import ReportQueryService, clamp_limit, parse_filters

router = APIRouter()


@router.post(
    "",
    response_model=CreateReportResponse,
    summary="Submit a report (JSON or multipart with voice/photo files)",
)
async def create_report(
    request: Request,
    service: ReportIngestionService = Depends(get_ingestion_service),
):
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith("application/json"):
        submission = JSONSubmission(body=await request.body())
    elif content_type.startswith("multipart/form-data"):
        submission = MultipartSubmission(form=await request.form())
    else:
        raise UnsupportedContentType("unsupported content type")

    report_id = await service.submit(submission)
    return CreateReportResponse(id=report_id)


@router.get(
    "",
    response_model=ReportListResponse,
    response_model_exclude_none=True,
    summary="List reports, newest first, with cursor pagination",
)
async def list_reports(
    limit: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    has_media: Optional[str] = Query(None),
    bbox: Optional[str] = Query(None),
    cursor: Optional[str] = Query(None),
    service: ReportQueryService = Depends(get_query_service),
):
    filters = parse_filters(
        category=category,
        start_date=start_date,
        end_date=end_date,
        has_media=has_media,
        bbox=bbox,
        cursor=cursor,
    )
    page = await service.list(filters, clamp_limit(limit))
    return ReportListResponse(items=page.items, next_cursor=page.next_cursor)
