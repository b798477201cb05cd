"""HTTP and WebSocket routes for ordering and payments.

Authentication happens upstream. Customer calls arrive with `X-Customer-Id`
set by the auth layer; operator calls carry the shared `X-Api-Key`.
"""

import asyncio

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from foodpay.common.config import settings
from foodpay.common.logging import logger
from foodpay.common.metrics import metrics_response
from foodpay.common.state_machine import OrderStatus
from foodpay.services.api.wiring import Services
from foodpay.services.ledger.schemas import OrderPage, OrderResponse, PaymentResponse
from foodpay.services.notification.fanout import order_channel
from foodpay.services.orders.schemas import CreateOrderRequest, UpdateOrderStatusRequest
from foodpay.services.orders.service import CartLine
from foodpay.services.orders.status import Actor
from foodpay.services.payments.schemas import (
    CreateIntentRequest,
    IntentResponse,
    VerificationResponse,
    VerifyPaymentRequest,
    WebhookAck,
)


router = APIRouter()


def get_services(request: Request) -> Services:
    return request.app.state.services


def enforce_api_key(x_api_key: str | None) -> None:
    """Reject requests that do not provide the configured API key."""

    if x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="invalid API key")


def current_actor(
    x_customer_id: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
) -> Actor:
    if x_api_key is not None:
        enforce_api_key(x_api_key)
        return Actor(customer_id=x_customer_id, is_admin=True)
    if not x_customer_id:
        raise HTTPException(status_code=401, detail="missing caller identity")
    return Actor(customer_id=x_customer_id)


def require_customer(x_customer_id: str | None = Header(default=None)) -> str:
    if not x_customer_id:
        raise HTTPException(status_code=401, detail="missing caller identity")
    return x_customer_id


def require_admin(x_api_key: str | None = Header(default=None)) -> None:
    enforce_api_key(x_api_key)


def _owner_scope(actor: Actor) -> str | None:
    # Admins see every order; customers only their own.
    return None if actor.is_admin else actor.customer_id


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/metrics")
def metrics():
    return metrics_response()


@router.post("/orders", status_code=201, response_model=OrderResponse)
def create_order(
    req: CreateOrderRequest,
    customer_id: str = Depends(require_customer),
    services: Services = Depends(get_services),
):
    """Price the cart and open a PENDING order awaiting payment."""

    return services.orders.create_order(
        customer_id,
        [CartLine(item_id=line.item_id, quantity=line.quantity) for line in req.items],
        req.delivery_address,
        req.contact_number,
    )


@router.get("/orders", response_model=OrderPage)
def list_my_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    customer_id: str = Depends(require_customer),
    services: Services = Depends(get_services),
):
    return services.queries.list_customer_orders(customer_id, page=page, limit=limit)


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.queries.get_order(order_id, customer_id=_owner_scope(actor))


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.status.cancel_order(order_id, actor)


@router.get("/admin/orders", response_model=OrderPage, dependencies=[Depends(require_admin)])
def list_orders(
    status: OrderStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    return services.queries.list_orders(
        page=page,
        limit=limit,
        status=status.value if status is not None else None,
    )


@router.put(
    "/admin/orders/{order_id}/status",
    response_model=OrderResponse,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    order_id: str,
    req: UpdateOrderStatusRequest,
    services: Services = Depends(get_services),
):
    return services.status.update_status(order_id, req.status)


@router.post("/payments/create", status_code=201, response_model=IntentResponse)
def create_payment_intent(
    req: CreateIntentRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    """Open a gateway order for checkout."""

    intent = services.intents.create_intent(req.order_id, req.amount, customer_id=_owner_scope(actor))
    return IntentResponse(
        remote_intent_id=intent.remote_intent_id,
        amount=intent.amount,
        currency=intent.currency,
        gateway_public_key=intent.gateway_public_key,
    )


@router.post("/payments/verify", response_model=VerificationResponse)
def verify_payment(
    req: VerifyPaymentRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    result = services.reconciler.confirm_payment(
        req.remote_order_id,
        req.remote_payment_id,
        req.remote_signature,
        req.order_id,
        customer_id=_owner_scope(actor),
    )
    return VerificationResponse(
        order_id=result.order_id,
        payment_status=result.payment_status,
        order_status=result.order_status,
        already_processed=not result.transitioned,
    )


@router.post("/payments/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(default=None),
    x_razorpay_event_id: str | None = Header(default=None),
    services: Services = Depends(get_services),
):
    """Gateway callback; the signature covers the exact raw body."""

    raw = await request.body()
    outcome = await run_in_threadpool(
        services.reconciler.handle_webhook_event,
        raw,
        x_razorpay_signature,
        x_razorpay_event_id,
    )
    return WebhookAck(outcome=outcome)


@router.get("/payments/{order_id}", response_model=PaymentResponse)
def get_payment(
    order_id: str,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.queries.get_payment(order_id, customer_id=_owner_scope(actor))


@router.websocket("/ws")
async def live_updates(
    websocket: WebSocket,
    customer_id: str | None = None,
    api_key: str | None = None,
):
    """Live order/payment events.

    Customers join `user:{id}` automatically, admins also join `admin`.
    Clients send `{"action": "join:order" | "leave:order", "orderId": ...}`.
    """

    services: Services = websocket.app.state.services
    is_admin = api_key is not None and api_key == settings.api_key
    if (api_key is not None and not is_admin) or (not customer_id and not is_admin):
        await websocket.close(code=1008)
        return

    await websocket.accept()
    subscriber = services.hub.subscribe(websocket, customer_id, is_admin)
    pump = asyncio.create_task(subscriber.pump())
    logger.info("ws_connected customer_id=%s admin=%s", customer_id, is_admin)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                continue
            if not isinstance(message, dict):
                continue
            action = message.get("action")
            order_id = message.get("orderId")
            if not order_id:
                continue
            if action == "join:order":
                allowed = await run_in_threadpool(services.queries.can_view, order_id, customer_id, is_admin)
                if allowed:
                    services.hub.join(subscriber, order_channel(order_id))
                    subscriber.offer({"event": "joined", "channel": order_channel(order_id), "data": {}})
                else:
                    subscriber.offer({"event": "error", "data": {"orderId": order_id, "message": "not allowed"}})
            elif action == "leave:order":
                services.hub.leave(subscriber, order_channel(order_id))
    except WebSocketDisconnect:
        logger.info("ws_disconnected customer_id=%s", customer_id)
    finally:
        services.hub.unsubscribe(subscriber)
        pump.cancel()
        await asyncio.gather(pump, return_exceptions=True)
