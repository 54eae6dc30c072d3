import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, List, Optional

from botocore.exceptions import ClientError

from src.common.models.bookings import BookingStatus, CancellationReason, PaymentStatus
from src.common.models.refunds import CancellationResult
from src.common.models.users import Actor
from src.common.repository.booking_repo import BookingRepository
from src.common.services.cancellation_policy import evaluate_cancellation
from src.common.services.notification_service import NotificationService
from src.common.services.payment_service import PaymentService
from src.common.utils.constants import MAX_COMMIT_ATTEMPTS, NOTIFICATION_WORKERS
from src.common.utils.custom_exceptions import (
    BookingConflict,
    InternalError,
    NotFoundException,
    PaymentProviderError,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CancellationService:
    def __init__(
        self,
        booking_repo: BookingRepository,
        payment_service: Optional[PaymentService],
        notification_service: Optional[NotificationService],
        clock: Callable[[], datetime] = _utcnow,
        max_attempts: int = MAX_COMMIT_ATTEMPTS,
    ):
        self.booking_repo = booking_repo
        self.payment_service = payment_service
        self.notification_service = notification_service
        self.clock = clock
        self.max_attempts = max_attempts

    def cancel_booking(self, booking_id: str, actor: Actor) -> CancellationResult:
        """Cancel a booking, refund what the policy allows and notify.

        Policy errors and ``NotFoundException`` propagate unchanged. Storage
        failures become ``InternalError``. Refund and notification failures
        never fail the cancellation.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = self._cancel_in_transaction(booking_id, actor)
                break
            except BookingConflict:
                logger.info(
                    f"Booking {booking_id} changed during cancellation, "
                    f"attempt {attempt}/{self.max_attempts}"
                )
            except ClientError as err:
                logger.error(f"Storage failure cancelling booking {booking_id}: {err}")
                raise InternalError("Failed to cancel booking", str(err)) from err
        else:
            raise InternalError(
                "Failed to cancel booking",
                f"booking {booking_id} kept changing during cancellation",
            )

        logger.info(
            f"Booking {booking_id} cancelled by {actor.user_id}, "
            f"refund {result.refund_amount} processed={result.refund_processed}"
        )

        failures = self._notify(booking_id)
        if failures:
            result.warning = (
                "Booking cancelled but some notifications failed: " + ", ".join(failures)
            )
        return result

    def _cancel_in_transaction(self, booking_id: str, actor: Actor) -> CancellationResult:
        with self.booking_repo.transaction() as tx:
            details = tx.load_booking_with_relations(booking_id)
            if details is None:
                raise NotFoundException("booking", booking_id)

            booking = details.booking
            now = self.clock()
            decision = evaluate_cancellation(booking, details.service, actor, now)

            refund_id = None
            if decision.amount > 0:
                refund_id = self._issue_refund(booking_id, booking.stripe_session_id, decision.amount)

            fields = {
                "status": BookingStatus.CANCELLED,
                "cancelled_by": actor.user_id,
                "cancelled_at": now,
                "cancellation_reason": (
                    CancellationReason.ADMIN_CANCELLED
                    if actor.is_admin
                    else CancellationReason.CUSTOMER_REQUEST
                ),
                # recorded even when issuance failed, for reconciliation
                "refund_amount": decision.amount,
            }
            if refund_id:
                fields["payment_status"] = PaymentStatus.REFUNDED
                fields["stripe_refund_id"] = refund_id

            tx.update_booking(booking_id, fields)

        return CancellationResult(
            refund_processed=refund_id is not None,
            refund_amount=decision.amount,
        )

    def _issue_refund(self, booking_id: str, session_id: str, amount: int) -> Optional[str]:
        if self.payment_service is None:
            logger.error(f"Payments not configured, refund of {amount} for {booking_id} not issued")
            return None
        try:
            return self.payment_service.issue_refund(
                session_id,
                amount,
                # one refund per booking, whatever amount a racing request computed
                idempotency_key=f"cancel-refund-{booking_id}",
            )
        except PaymentProviderError as err:
            logger.error(f"Stripe rejected refund for booking {booking_id}, cancelling anyway: {err}")
        except Exception:
            logger.exception(f"Unexpected refund error for booking {booking_id}, cancelling anyway")
        return None

    def _notify(self, booking_id: str) -> List[str]:
        if self.notification_service is None:
            return []

        tasks = {
            "customer email": self.notification_service.send_customer_cancelled,
            "admin notice": self.notification_service.send_admin_cancellation_notice,
        }
        failures = []
        with ThreadPoolExecutor(max_workers=NOTIFICATION_WORKERS) as pool:
            futures = {name: pool.submit(send, booking_id) for name, send in tasks.items()}
            for name, future in futures.items():
                try:
                    future.result()
                except Exception:
                    logger.exception(f"Failed to send {name} for booking {booking_id}")
                    failures.append(name)
        return failures
