from fastapi import APIRouter, Depends, HTTPException, Request

from moderation_engine.core.exceptions import (
    ContentModeratorException,
    ContentTooLargeException,
    create_http_exception,
)
from moderation_engine.core.logger import logger
from moderation_engine.models.content import ContentItem
from moderation_engine.schemas.moderation import (
    MAX_IMAGE_BYTES,
    BatchItemResponse,
    ModerationBatchRequest,
    ModerationBatchResponse,
    ModerationCompositeRequest,
    ModerationHashtagsRequest,
    ModerationImageRequest,
    ModerationResultResponse,
    ModerationTextRequest,
    ModerationUrlRequest,
    StatisticsResponse,
)
from moderation_engine.services.moderation_service import ModerationService

router = APIRouter(prefix="/api/v1/moderate", tags=["moderation"])


def get_moderation_service(request: Request) -> ModerationService:
    """The service instance built at application startup."""
    return request.app.state.moderation_service


async def _moderate(
    service: ModerationService,
    request: Request,
    item: ContentItem,
) -> ModerationResultResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(
        f"{item.kind.value.capitalize()} moderation request received",
        extra={"request_id": request_id, "content_kind": item.kind.value}
    )

    try:
        report = await service.moderate_detailed(item)
    except ContentModeratorException as e:
        logger.warning(
            f"{item.kind.value.capitalize()} moderation failed",
            extra={"request_id": request_id, "error": e.message, "error_code": e.error_code}
        )
        raise create_http_exception(e)
    except Exception as e:
        logger.error(
            f"Unexpected error in {item.kind.value} moderation",
            extra={"request_id": request_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(
            status_code=500,
            detail={
                "error_code": "INTERNAL_SERVER_ERROR",
                "message": f"An unexpected error occurred during {item.kind.value} moderation",
                "details": {"error": str(e)}
            }
        )

    logger.info(
        f"{item.kind.value.capitalize()} moderation completed successfully",
        extra={
            "request_id": request_id,
            "fingerprint": report.fingerprint[:16],
            "verdict": report.verdict.kind.value,
        }
    )
    return ModerationResultResponse.from_report(report)


@router.post("/text", response_model=ModerationResultResponse, status_code=200)
async def moderate_text(
    payload: ModerationTextRequest,
    request: Request,
    service: ModerationService = Depends(get_moderation_service),
):
    """
    Moderate free text for profanity, harassment, spam and personal information.

    Returns:
        ModerationResultResponse: Verdict and per-signal outcomes
    """
    return await _moderate(service, request, payload.to_item())


@router.post("/hashtags", response_model=ModerationResultResponse, status_code=200)
async def moderate_hashtags(
    payload: ModerationHashtagsRequest,
    request: Request,
    service: ModerationService = Depends(get_moderation_service),
):
    """Moderate a list of hashtags for profane tags and hashtag spam."""
    return await _moderate(service, request, payload.to_item())


@router.post("/url", response_model=ModerationResultResponse, status_code=200)
async def moderate_url(
    payload: ModerationUrlRequest,
    request: Request,
    service: ModerationService = Depends(get_moderation_service),
):
    """
    Moderate a URL for known malicious domains, scams and phishing.

    A URL without a host is rejected with 400.
    """
    return await _moderate(service, request, payload.to_item())


@router.post("/image", response_model=ModerationResultResponse, status_code=200)
async def moderate_image(
    payload: ModerationImageRequest,
    request: Request,
    service: ModerationService = Depends(get_moderation_service),
):
    """
    Moderate a raw pixel buffer for NSFW content, violence and low quality.

    Args:
        payload: Base64 pixels with width, height and channel count

    Raises:
        HTTPException: 413 when the decoded buffer exceeds the size limit,
            400 when it does not match the declared dimensions
    """
    pixels = payload.decoded_pixels()
    if len(pixels) > MAX_IMAGE_BYTES:
        raise create_http_exception(ContentTooLargeException(
            "Image exceeds maximum size",
            max_size=MAX_IMAGE_BYTES,
            actual_size=len(pixels)
        ))
    return await _moderate(service, request, payload.to_item())


@router.post("/composite", response_model=ModerationResultResponse, status_code=200)
async def moderate_composite(
    payload: ModerationCompositeRequest,
    request: Request,
    service: ModerationService = Depends(get_moderation_service),
):
    """Moderate a bundle of items (an event or a profile) under one verdict."""
    return await _moderate(service, request, payload.to_item())


@router.post("/batch", response_model=ModerationBatchResponse, status_code=200)
async def moderate_batch(
    payload: ModerationBatchRequest,
    request: Request,
    service: ModerationService = Depends(get_moderation_service),
):
    """
    Moderate many items concurrently.

    Results are returned in request order. A failing item carries its error
    and does not fail the rest of the batch.
    """
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(
        f"Batch moderation request received",
        extra={"request_id": request_id, "item_count": len(payload.items)}
    )

    results = await service.moderate_batch([item.to_item() for item in payload.items])
    responses = [BatchItemResponse.from_result(result) for result in results]

    return ModerationBatchResponse(
        results=responses,
        total_items=len(responses),
        failed_items=sum(1 for result in results if not result.ok),
    )


@router.get("/statistics", response_model=StatisticsResponse, status_code=200)
async def moderation_statistics(service: ModerationService = Depends(get_moderation_service)):
    return StatisticsResponse(**service.statistics.to_dict())


@router.delete("/cache", status_code=200)
async def clear_moderation_cache(service: ModerationService = Depends(get_moderation_service)):
    cleared = service.clear_cache()
    return {"cleared_entries": cleared}
