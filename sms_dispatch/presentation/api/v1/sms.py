from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ....application.dtos import (
    ApiResponseDTO,
    BulkSmsDTO,
    DeliveryRecordDTO,
    EstimateCostDTO,
    InboundSmsDTO,
    SendSmsDTO,
)
from ....application.services import DispatchService
from ....domain.errors import ErrorKind
from ..dependencies import get_dispatch_service

router = APIRouter(prefix="/sms", tags=["sms"])


def _envelope(status_code: int, response: ApiResponseDTO) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@router.post(
    "/send",
    response_model=ApiResponseDTO,
    summary="Send an SMS",
    description="Send one SMS through the chosen provider, falling back to the configured alternatives.",
)
async def send_sms(
    request: SendSmsDTO,
    service: DispatchService = Depends(get_dispatch_service),
) -> JSONResponse:
    credentials = request.gateway.to_domain() if request.gateway else None
    result = await service.send(request.to_domain(), gateway_credentials=credentials)
    record = result.record

    attempts = [
        {
            "provider": a.provider,
            "success": a.success,
            "error_kind": a.error_kind.value if a.error_kind else None,
            "error_code": a.error_code,
            "error": a.error,
        }
        for a in result.attempts
    ]
    data = {"record": DeliveryRecordDTO.from_record(record).model_dump(mode="json"), "attempts": attempts}

    if result.success:
        return _envelope(
            status.HTTP_200_OK,
            ApiResponseDTO(success=True, message="SMS sent successfully", data=data),
        )

    status_code = (
        status.HTTP_404_NOT_FOUND
        if record.error_kind == ErrorKind.TEMPLATE_NOT_FOUND
        else status.HTTP_502_BAD_GATEWAY
    )
    return _envelope(
        status_code,
        ApiResponseDTO(
            success=False,
            message="SMS sending failed",
            data=data,
            errors={"general": [record.error_message or "Unknown error"]},
        ),
    )


@router.post(
    "/bulk",
    response_model=ApiResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a bulk SMS campaign",
)
async def send_bulk_sms(
    request: BulkSmsDTO,
    service: DispatchService = Depends(get_dispatch_service),
) -> JSONResponse:
    ticket = await service.send_bulk(request.to_domain())
    data = {
        "campaign_id": ticket.campaign_id,
        "total_recipients": ticket.total_recipients,
        "status": ticket.status,
    }

    if ticket.error_kind is not None:
        status_code = (
            status.HTTP_404_NOT_FOUND
            if ticket.error_kind == ErrorKind.TEMPLATE_NOT_FOUND
            else status.HTTP_400_BAD_REQUEST
        )
        return _envelope(
            status_code,
            ApiResponseDTO(
                success=False,
                message="Failed to queue bulk SMS",
                data=data,
                errors={"general": [ticket.error or "Unknown error"]},
            ),
        )

    return _envelope(
        status.HTTP_202_ACCEPTED,
        ApiResponseDTO(success=True, message="Bulk SMS campaign queued successfully", data=data),
    )


@router.post(
    "/receive",
    response_model=ApiResponseDTO,
    summary="Inbound SMS webhook",
)
async def receive_sms(
    request: InboundSmsDTO,
    service: DispatchService = Depends(get_dispatch_service),
) -> ApiResponseDTO:
    record = await service.receive_inbound(request.to_domain())
    return ApiResponseDTO(
        success=True,
        message="SMS received and processed successfully",
        data=DeliveryRecordDTO.from_record(record).model_dump(mode="json"),
    )


@router.post("/estimate", response_model=ApiResponseDTO, summary="Estimate campaign cost")
async def estimate_cost(
    request: EstimateCostDTO,
    service: DispatchService = Depends(get_dispatch_service),
) -> ApiResponseDTO:
    try:
        estimate = service.estimate_cost(request.message, request.recipients, request.provider)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return ApiResponseDTO(
        success=True,
        message="Cost estimated",
        data={
            "provider": estimate.provider,
            "segments": estimate.segments,
            "recipients": estimate.recipients,
            "cost": estimate.cost,
            "currency": estimate.currency,
        },
    )


@router.get("/providers", response_model=ApiResponseDTO, summary="List SMS providers")
async def list_providers(service: DispatchService = Depends(get_dispatch_service)) -> ApiResponseDTO:
    return ApiResponseDTO(success=True, message="Available providers", data=service.available_providers())


@router.get(
    "/delivery/{provider}/{message_id}",
    response_model=ApiResponseDTO,
    summary="Check carrier delivery status",
)
async def delivery_status(
    provider: str,
    message_id: str,
    service: DispatchService = Depends(get_dispatch_service),
) -> ApiResponseDTO:
    result = await service.check_delivery(provider, message_id)
    if result.error_kind == ErrorKind.MISCONFIGURED_PROVIDER and provider not in {
        p["slug"] for p in service.available_providers()
    }:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown provider '{provider}'")

    return ApiResponseDTO(
        success=result.error_kind is None,
        message="Delivery status retrieved" if result.error_kind is None else "Delivery status lookup failed",
        data={
            "provider": provider,
            "message_id": message_id,
            "status": result.status.value,
            "vendor_status": result.vendor_status,
            "updated_at": result.updated_at.isoformat(),
            "error_kind": result.error_kind.value if result.error_kind else None,
            "error": result.error,
        },
    )
