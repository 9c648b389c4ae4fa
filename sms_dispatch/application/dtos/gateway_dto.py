from pydantic import BaseModel, Field

from ...domain.models import GatewayCredentials


class GatewayCredentialsDTO(BaseModel):
    """Gateway connection details, supplied with every gateway call."""

    base_address: str = Field(..., min_length=1)
    port: int = Field(..., gt=0, lt=65536)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    serial_number: str = Field(..., min_length=1)

    def to_domain(self) -> GatewayCredentials:
        return GatewayCredentials(
            base_address=self.base_address,
            port=self.port,
            username=self.username,
            password=self.password,
            serial_number=self.serial_number,
        )


class GatewayStatusDTO(BaseModel):
    credentials: GatewayCredentialsDTO
    session_id: int = Field(..., ge=0)
    message_id: str | None = None
