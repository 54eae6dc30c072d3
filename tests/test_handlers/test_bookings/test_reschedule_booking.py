import importlib
import json
import os
import unittest
from datetime import datetime, timezone, timedelta
from unittest.mock import MagicMock, patch

from src.common.models.bookings import Booking, BookingStatus
from src.common.models.users import Actor, UserRole
from src.common.utils.custom_exceptions import (
    InvalidBookingState,
    NotFoundException,
    Unauthorized,
)


class RescheduleBookingTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.env = patch.dict(os.environ, {"TABLE_NAME": "test-table"}, clear=False)
        cls.env.start()
        cls.resource = patch("src.handlers.bookings.reschedule_booking.resource")
        mock_res = cls.resource.start()
        mock_res.return_value.Table.return_value = MagicMock()
        import src.handlers.bookings.reschedule_booking as mod
        cls.mod = importlib.reload(mod)

    @classmethod
    def tearDownClass(cls):
        cls.resource.stop()
        cls.env.stop()

    def setUp(self):
        self.p_reschedule = patch.object(self.mod.booking_service, "reschedule_booking")
        self.mock_reschedule = self.p_reschedule.start()
        self.new_start = (datetime.now(timezone.utc) + timedelta(days=3)).replace(microsecond=0)

    def tearDown(self):
        self.p_reschedule.stop()

    def _event(self, booking_id="b1", body=None, user_id="admin-1"):
        if body is None:
            body = json.dumps({"start_time": self.new_start.isoformat()})
        return {
            "pathParameters": {"id": booking_id} if booking_id else {},
            "body": body,
            "requestContext": {"authorizer": {"user_id": user_id, "role": "ADMIN"} if user_id else {}},
        }

    def test_missing_authorizer_returns_401(self):
        resp = self.mod.reschedule_booking(self._event(user_id=None), None)
        self.assertEqual(401, resp["statusCode"])

    def test_missing_booking_id_returns_400(self):
        resp = self.mod.reschedule_booking(self._event(booking_id=None), None)
        self.assertEqual(400, resp["statusCode"])

    def test_missing_body_returns_400(self):
        resp = self.mod.reschedule_booking(self._event(body=""), None)
        self.assertEqual(400, resp["statusCode"])
        self.mock_reschedule.assert_not_called()

    def test_past_start_returns_400(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        resp = self.mod.reschedule_booking(
            self._event(body=json.dumps({"start_time": past.isoformat()})), None
        )
        self.assertEqual(400, resp["statusCode"])
        self.mock_reschedule.assert_not_called()

    def test_naive_start_returns_400(self):
        resp = self.mod.reschedule_booking(
            self._event(body=json.dumps({"start_time": "2030-01-01T10:00:00"})), None
        )
        self.assertEqual(400, resp["statusCode"])

    def test_success(self):
        self.mock_reschedule.return_value = Booking(
            booking_id="b1",
            customer_id="u1",
            service_id="s1",
            start_time=self.new_start,
            end_time=self.new_start + timedelta(hours=1),
            status=BookingStatus.CONFIRMED,
        )

        resp = self.mod.reschedule_booking(self._event(), None)

        self.assertEqual(200, resp["statusCode"])
        self.assertEqual(json.loads(resp["body"])["message"], "Booking rescheduled")
        self.mock_reschedule.assert_called_once_with(
            "b1", Actor("admin-1", UserRole.ADMIN), self.new_start
        )

    def test_customer_returns_403(self):
        self.mock_reschedule.side_effect = Unauthorized("Only admins can reschedule bookings")
        resp = self.mod.reschedule_booking(self._event(), None)
        self.assertEqual(403, resp["statusCode"])

    def test_not_found_returns_404(self):
        self.mock_reschedule.side_effect = NotFoundException("booking", "b1")
        resp = self.mod.reschedule_booking(self._event(), None)
        self.assertEqual(404, resp["statusCode"])

    def test_cancelled_booking_returns_409(self):
        self.mock_reschedule.side_effect = InvalidBookingState("cancelled")
        resp = self.mod.reschedule_booking(self._event(), None)
        self.assertEqual(409, resp["statusCode"])

    def test_generic_error_returns_500(self):
        self.mock_reschedule.side_effect = RuntimeError("boom")
        resp = self.mod.reschedule_booking(self._event(), None)
        self.assertEqual(500, resp["statusCode"])


if __name__ == "__main__":
    unittest.main()
