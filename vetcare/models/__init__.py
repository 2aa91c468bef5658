from vetcare.models.user import User
from vetcare.models.veterinarian import Specialization, Veterinarian, veterinarian_specialization
from vetcare.models.pet import Pet
from vetcare.models.time_slot import TimeSlot
from vetcare.models.appointment import Appointment
from vetcare.models.payment import Payment
from vetcare.models.homepage_content import HomepageContent
from vetcare.models.notification import Notification

__all__ = [
    "Appointment",
    "HomepageContent",
    "Notification",
    "Payment",
    "Pet",
    "Specialization",
    "TimeSlot",
    "User",
    "Veterinarian",
    "veterinarian_specialization",
]
