from app.models.user import User
from app.models.bus import Bus
from app.models.schedule import Schedule
from app.models.booking import Booking, BookingStatus, PaymentStatus

__all__ = ["User", "Bus", "Schedule", "Booking", "BookingStatus", "PaymentStatus"]
