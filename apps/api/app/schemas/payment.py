"""Payment schemas."""

from uuid import UUID

from app.schemas.common import BaseSchema, Money


class PaymentMethodsResponse(BaseSchema):
    """Payment methods a customer may choose at checkout."""

    methods: list[str]


class PaymentInitiationResponse(BaseSchema):
    """Result of starting a gateway payment for a new order."""

    id: UUID
    gateway: str
    gateway_payment_id: str | None
    gateway_status: str
    amount: Money
    currency: str
    payment_url: str | None


class WebhookAcceptedResponse(BaseSchema):
    status: str
