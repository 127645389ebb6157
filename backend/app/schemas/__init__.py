from app.schemas.user import UserCreate, UserResponse, UserLogin, Token
from app.schemas.bus import BusCreate, BusUpdate, BusResponse
from app.schemas.schedule import ScheduleCreate, ScheduleUpdate, ScheduleResponse, ScheduleDetailResponse
from app.schemas.booking import BookingCreate, BookingConfirm, BookingResponse, BookingCancelResponse
from app.schemas.payment import PaymentIntentCreate, PaymentIntentResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "BusCreate", "BusUpdate", "BusResponse",
    "ScheduleCreate", "ScheduleUpdate", "ScheduleResponse", "ScheduleDetailResponse",
    "BookingCreate", "BookingConfirm", "BookingResponse", "BookingCancelResponse",
    "PaymentIntentCreate", "PaymentIntentResponse",
]
