# routers/payment_router.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from pusarapay.core.dependencies import get_billing_flow, get_query_service, get_reconciler
from pusarapay.core.errors import ValidationError
from pusarapay.models.payment_model import (
    CreateBillRequest,
    CreateBillResponse,
    NotificationChannel,
    PaymentStatusView,
)
from pusarapay.services.billing_service import BillCreationFlow
from pusarapay.services.query_service import PaymentQueryService
from pusarapay.services.reconciler import NotificationReconciler, extract_notification

router = APIRouter(prefix="/payment", tags=["Payment"])
logger = logging.getLogger("pusarapay")

# ToyyibPay keeps retrying the callback until it reads exactly this body.
CALLBACK_ACK = "RECEIVEOK"

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_create_payload(request: Request) -> dict:
    """JSON object or form fields; anything else is a validation error."""
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    try:
        data = await request.json()
    except ValueError:
        raise ValidationError("Request body must be a JSON object or form data")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object or form data")
    return data


# ----------------------------
# 1. CREATE BILL
# ----------------------------
@router.post("/create")
async def create_bill(
    request: Request,
    flow: BillCreationFlow = Depends(get_billing_flow),
):
    # PaymentError subclasses are mapped to 400/404/502/503 by the app's handler
    payload = CreateBillRequest.model_validate(await read_create_payload(request))
    result = await flow.create(payload)
    body = CreateBillResponse(bill_code=result.bill_code, payment_url=result.payment_url)
    return JSONResponse(body.model_dump(by_alias=True))


# ----------------------------
# 2. RETURN (browser redirect)
# ----------------------------
@router.get("/return")
async def payment_return(
    request: Request,
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    params = dict(request.query_params)
    logger.info(f"[RETURN] User returned from ToyyibPay: {params}")

    notification = extract_notification(NotificationChannel.REDIRECT, params)
    try:
        await reconciler.apply(notification)
    except Exception as e:
        logger.error(f"[RETURN] Reconciliation crashed for {notification.bill_code}: {e}", exc_info=True)

    # always 200 for the app's WebView, whatever happened above
    return {
        "success": True,
        "statusId": notification.raw_status,
        "billCode": notification.bill_code,
        "message": notification.message,
        "transactionId": notification.transaction_id,
    }


# ----------------------------
# 3. CALLBACK (server-to-server)
# ----------------------------
@router.post("/callback", response_class=PlainTextResponse)
async def payment_callback(
    request: Request,
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    payload = dict(request.query_params)
    try:
        form = await request.form()
        payload.update({key: value for key, value in form.items() if isinstance(value, str)})
    except (MultiPartException, StarletteHTTPException, ValueError) as e:
        # unreadable body: fall back to whatever the query string carried
        logger.warning(f"[CALLBACK] Unreadable callback body: {e}")

    logger.info(f"[CALLBACK] ToyyibPay callback received: {payload}")
    try:
        await reconciler.reconcile(NotificationChannel.CALLBACK, payload)
    except Exception as e:
        logger.error(f"[CALLBACK] Reconciliation crashed: {e}", exc_info=True)
    return PlainTextResponse(CALLBACK_ACK, status_code=status.HTTP_200_OK)


# ----------------------------
# 4. STATUS QUERIES
# ----------------------------
@router.get("/status/{reservation_id}", response_model=PaymentStatusView)
async def payment_status(
    reservation_id: int,
    queries: PaymentQueryService = Depends(get_query_service),
):
    if reservation_id <= 0:
        raise HTTPException(status_code=400, detail="reservation_id must be a positive integer")

    order = await queries.latest_for_reservation(reservation_id)
    if order is None:
        raise HTTPException(status_code=404, detail="No payment found for this reservation")
    return PaymentStatusView.from_order(order)


@router.get("/bill/{bill_code}", response_model=PaymentStatusView)
async def bill_status(
    bill_code: str,
    queries: PaymentQueryService = Depends(get_query_service),
):
    order = await queries.by_bill_code(bill_code.strip())
    if order is None:
        raise HTTPException(status_code=404, detail="Bill not found")
    return PaymentStatusView.from_order(order)
