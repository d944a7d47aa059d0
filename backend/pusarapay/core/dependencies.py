# core/dependencies.py
from functools import lru_cache

from fastapi import Depends

from pusarapay.core.config import settings
from pusarapay.core.firebase import get_firestore_client
from pusarapay.services.billing_service import BillCreationFlow
from pusarapay.services.legacy_client import LegacyReservationClient
from pusarapay.services.mirror_service import MirrorSync
from pusarapay.services.payment_store import FirestorePaymentStore, PaymentStore
from pusarapay.services.query_service import PaymentQueryService
from pusarapay.services.reconciler import MirrorDispatcher, NotificationReconciler
from pusarapay.services.reservation_client import ReservationClient
from pusarapay.services.toyyibpay import ToyyibPayClient
from pusarapay.tasks.mirror_dispatch import AsyncioMirrorDispatcher, CeleryMirrorDispatcher


@lru_cache(maxsize=1)
def get_store() -> PaymentStore:
    return FirestorePaymentStore(get_firestore_client, collection=settings.PAYMENTS_COLLECTION)


@lru_cache(maxsize=1)
def get_toyyibpay_client() -> ToyyibPayClient:
    return ToyyibPayClient(settings)


@lru_cache(maxsize=1)
def get_reservation_client() -> ReservationClient:
    return ReservationClient(settings)


@lru_cache(maxsize=1)
def get_mirror_sync() -> MirrorSync:
    return MirrorSync(get_store(), LegacyReservationClient(settings))


@lru_cache(maxsize=1)
def get_mirror_dispatcher() -> MirrorDispatcher:
    if settings.MIRROR_BACKEND.strip().lower() == "celery":
        return CeleryMirrorDispatcher()
    return AsyncioMirrorDispatcher(get_mirror_sync())


def get_billing_flow(
    store: PaymentStore = Depends(get_store),
    provider: ToyyibPayClient = Depends(get_toyyibpay_client),
    reservations: ReservationClient = Depends(get_reservation_client),
) -> BillCreationFlow:
    return BillCreationFlow(store, provider, reservations)


def get_reconciler(
    store: PaymentStore = Depends(get_store),
    dispatch_mirror: MirrorDispatcher = Depends(get_mirror_dispatcher),
) -> NotificationReconciler:
    return NotificationReconciler(store, dispatch_mirror)


def get_query_service(store: PaymentStore = Depends(get_store)) -> PaymentQueryService:
    return PaymentQueryService(store)
