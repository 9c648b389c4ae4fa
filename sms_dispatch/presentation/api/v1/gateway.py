from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ....application.dtos import ApiResponseDTO, GatewayCredentialsDTO, GatewayStatusDTO
from ....application.services import DispatchService
from ....gateway import GatewayAdapter
from ..dependencies import get_dispatch_service, get_gateway_adapter

router = APIRouter(prefix="/gateway", tags=["gateway"])


@router.post("/connect", response_model=ApiResponseDTO, summary="Test gateway reachability")
async def connect(
    request: GatewayCredentialsDTO,
    adapter: GatewayAdapter = Depends(get_gateway_adapter),
) -> ApiResponseDTO:
    result = await adapter.connect(request.to_domain())
    return ApiResponseDTO(
        success=result.reachable,
        message="Gateway reachable" if result.reachable else "Gateway unreachable",
        data={
            "url": result.url,
            "http_status": result.http_status,
            "error_kind": result.error_kind.value if result.error_kind else None,
            "error": result.error,
        },
    )


@router.post("/channels", response_model=ApiResponseDTO, summary="List gateway SIM channels")
async def channels(
    request: GatewayCredentialsDTO,
    adapter: GatewayAdapter = Depends(get_gateway_adapter),
):
    credentials = request.to_domain()
    auth = await adapter.authenticate(credentials)
    if not auth.authenticated:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=ApiResponseDTO(
                success=False,
                message=f"Authentication failed: {auth.error}",
                data={"error_kind": auth.error_kind.value if auth.error_kind else None},
            ).model_dump(mode="json"),
        )

    result = await adapter.probe_inventory(credentials, token=auth.token)
    return ApiResponseDTO(
        success=result.available,
        message="SIM status retrieved" if result.available else "SIM status unavailable",
        data={
            "channels": [
                {
                    "port": c.index,
                    "sim_number": c.number,
                    "status": c.state.value,
                    "operator": c.carrier,
                    "signal": c.signal,
                    "signal_estimated": c.signal_estimated,
                }
                for c in result.channels
            ],
            "endpoint": result.endpoint,
            "shape": result.shape,
            "endpoints_tried": result.endpoints_tried,
            "model": result.model,
            "version": result.version,
            "error_kind": result.error_kind.value if result.error_kind else None,
        },
    )


@router.post("/status", response_model=ApiResponseDTO, summary="Check gateway message status")
async def message_status(
    request: GatewayStatusDTO,
    service: DispatchService = Depends(get_dispatch_service),
) -> ApiResponseDTO:
    result = await service.check_status(request.session_id, request.credentials.to_domain(), request.message_id)
    return ApiResponseDTO(
        success=result.known,
        message="Status retrieved" if result.known else "Status unknown",
        data={
            "session_id": result.session_id,
            "status": result.status.value if result.status else None,
            "vendor_status": result.vendor_status,
            "endpoint": result.endpoint,
            "endpoints_tried": result.endpoints_tried,
            "error_kind": result.error_kind.value if result.error_kind else None,
        },
    )
