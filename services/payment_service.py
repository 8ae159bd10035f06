"""
Payment normalization & settlement.

Method canon: `cash` stays cash, every other method (bank_transfer, visa,
vodafone, vodafone_cash, anything unrecognized) is a bank payment. Cash
starts `pending` and waits for a supervisor to settle it; bank payments
are recorded as `completed`.

Settlement state machine:

    pending -> completed | failed      (supervisor of the payment's trip)
"""
import logging

from core.errors import Forbidden, InvalidRequest, InvalidTransition, NotFound
from models.records import Payment, Snapshot
from services import aggregation
from services.engine import DataEngine

logger = logging.getLogger(__name__)

SETTLEMENT_TARGETS = ("completed", "failed")


def normalize_method(method: str) -> str:
    return "cash" if method.strip().lower() == "cash" else "bank"


def initial_status(method: str) -> str:
    return "pending" if method == "cash" else "completed"


def _is_amount(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _activate_subscription(snapshot: Snapshot, student_id: str | None, now) -> None:
    student = snapshot.student(student_id)
    if student is not None and student.subscription_status != "active":
        student.subscription_status = "active"
        student.touch(now)
        logger.info("Subscription activated for %s", student_id)


class PaymentService:
    def __init__(self, engine: DataEngine):
        self.engine = engine

    # ---------------- Writes ---------------- #

    async def create_payment(
        self,
        student_id: str,
        trip_id: str,
        amount,
        method: str,
        booking_id: str | None = None,
        date: str | None = None,
    ) -> Payment:
        if not student_id or not trip_id:
            raise InvalidRequest("studentId and tripId are required")
        if not _is_amount(amount):
            raise InvalidRequest("amount must be a positive number")
        if not method or not isinstance(method, str):
            raise InvalidRequest("method is required")

        async with self.engine.transaction() as snapshot:
            if snapshot.student(student_id) is None:
                raise NotFound("Student not found")
            if snapshot.trip(trip_id) is None:
                raise NotFound("Trip not found")

            now = self.engine.now()
            canonical = normalize_method(method)
            payment = Payment.new(
                "payment", now,
                student_id=student_id,
                trip_id=trip_id,
                booking_id=booking_id,
                amount=amount,
                method=canonical,
                status=initial_status(canonical),
                date=date or now.date().isoformat(),
            )
            snapshot.payments.append(payment)
            if payment.status == "completed":
                _activate_subscription(snapshot, student_id, now)
            logger.info("Payment %s recorded: %s %s (%s)", payment.id, canonical, amount, payment.status)
            return payment

    async def settle_payment(self, supervisor_id: str, payment_id: str, status: str) -> Payment:
        if status not in SETTLEMENT_TARGETS:
            raise InvalidRequest("status must be 'completed' or 'failed'")

        async with self.engine.transaction() as snapshot:
            payment = snapshot.payment(payment_id)
            if payment is None:
                raise NotFound("Payment not found")
            trip = snapshot.trip(payment.trip_id)
            if trip is None or trip.supervisor_id != supervisor_id:
                logger.warning("Supervisor %s may not settle payment %s", supervisor_id, payment_id)
                raise Forbidden("Not authorized to settle this payment")
            if payment.status != "pending":
                raise InvalidTransition(f"Payment is already {payment.status}")

            now = self.engine.now()
            payment.status = status
            payment.touch(now)
            if status == "completed":
                _activate_subscription(snapshot, payment.student_id, now)
            logger.info("Payment %s settled as %s by %s", payment_id, status, supervisor_id)
            return payment

    async def delete_payment(self, payment_id: str) -> None:
        async with self.engine.transaction() as snapshot:
            if snapshot.payment(payment_id) is None:
                raise NotFound("Payment not found")
            snapshot.payments = [p for p in snapshot.payments if p.id != payment_id]
            logger.info("Payment %s deleted", payment_id)

    # ---------------- Reads ---------------- #

    async def get_payment(self, payment_id: str) -> Payment:
        snapshot = await self.engine.read()
        payment = snapshot.payment(payment_id)
        if payment is None:
            raise NotFound("Payment not found")
        return payment

    async def list_payments(
        self,
        student_id: str | None = None,
        status: str | None = None,
        method: str | None = None,
        trip_id: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> list[Payment]:
        snapshot = await self.engine.read()
        payments = snapshot.payments
        if student_id:
            payments = [p for p in payments if p.student_id == student_id]
        if status:
            payments = [p for p in payments if p.status == status]
        if method:
            payments = [p for p in payments if p.method == normalize_method(method)]
        if trip_id:
            payments = [p for p in payments if p.trip_id == trip_id]
        if date_from:
            payments = [p for p in payments if p.date and p.date >= date_from]
        if date_to:
            payments = [p for p in payments if p.date and p.date[:10] <= date_to]
        return payments

    async def student_payments(self, student_id: str) -> list[dict]:
        snapshot = await self.engine.read()
        return aggregation.student_payments(snapshot, student_id)

    async def supervisor_payments(self, supervisor_id: str) -> dict:
        snapshot = await self.engine.read()
        return aggregation.supervisor_payments(snapshot, supervisor_id)
