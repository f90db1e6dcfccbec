"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_PATIENT_NOTES_LENGTH = 1000
MAX_CANCELLATION_REASON_LENGTH = 500

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:3000",
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Consultation types
CONSULTATION_TYPE_IN_PERSON = "in_person"
CONSULTATION_TYPE_VIDEO = "video"
CONSULTATION_TYPES = (CONSULTATION_TYPE_IN_PERSON, CONSULTATION_TYPE_VIDEO)
CONSULTATION_TYPE_LABELS = {
    CONSULTATION_TYPE_IN_PERSON: "In-person",
    CONSULTATION_TYPE_VIDEO: "Video",
}

# Booking statuses
BOOKING_STATUS_PENDING_PAYMENT = "pending_payment"
BOOKING_STATUS_CONFIRMED = "confirmed"
BOOKING_STATUS_PENDING_APPROVAL = "pending_approval"
BOOKING_STATUS_APPROVED = "approved"
BOOKING_STATUS_REJECTED = "rejected"
BOOKING_STATUS_COMPLETED = "completed"
BOOKING_STATUS_CANCELLED_PATIENT = "cancelled_patient"
BOOKING_STATUS_CANCELLED_DOCTOR = "cancelled_doctor"
BOOKING_STATUS_NO_SHOW = "no_show"
BOOKING_STATUS_REFUNDED = "refunded"

BOOKING_STATUSES = (
    BOOKING_STATUS_PENDING_PAYMENT,
    BOOKING_STATUS_CONFIRMED,
    BOOKING_STATUS_PENDING_APPROVAL,
    BOOKING_STATUS_APPROVED,
    BOOKING_STATUS_REJECTED,
    BOOKING_STATUS_COMPLETED,
    BOOKING_STATUS_CANCELLED_PATIENT,
    BOOKING_STATUS_CANCELLED_DOCTOR,
    BOOKING_STATUS_NO_SHOW,
    BOOKING_STATUS_REFUNDED,
)

# Statuses that occupy a slot. Must match the partial unique index on bookings.
ACTIVE_BOOKING_STATUSES = (
    BOOKING_STATUS_PENDING_PAYMENT,
    BOOKING_STATUS_CONFIRMED,
    BOOKING_STATUS_PENDING_APPROVAL,
    BOOKING_STATUS_APPROVED,
)

CANCELLABLE_BOOKING_STATUSES = (
    BOOKING_STATUS_CONFIRMED,
    BOOKING_STATUS_PENDING_APPROVAL,
    BOOKING_STATUS_APPROVED,
)

# Doctor-initiated transitions (current status -> allowed targets)
DOCTOR_BOOKING_TRANSITIONS = {
    BOOKING_STATUS_PENDING_APPROVAL: (BOOKING_STATUS_APPROVED, BOOKING_STATUS_REJECTED),
    BOOKING_STATUS_CONFIRMED: (BOOKING_STATUS_COMPLETED, BOOKING_STATUS_NO_SHOW),
    BOOKING_STATUS_APPROVED: (BOOKING_STATUS_COMPLETED, BOOKING_STATUS_NO_SHOW),
    BOOKING_STATUS_CANCELLED_PATIENT: (BOOKING_STATUS_REFUNDED,),
    BOOKING_STATUS_CANCELLED_DOCTOR: (BOOKING_STATUS_REFUNDED,),
}

# Unpaid bookings are hard-deleted after this many minutes, freeing the slot
PENDING_PAYMENT_TTL_MINUTES = 15

# Availability queries
MAX_AVAILABILITY_RANGE_DAYS = 31  # Inclusive number of dates per availability query
DEFAULT_SLOT_DURATION_MINUTES = 30
DEFAULT_BUFFER_MINUTES = 0

# Exception kinds
EXCEPTION_KIND_BLOCKED = "blocked"
EXCEPTION_KIND_ADDED = "added"
EXCEPTION_KINDS = (EXCEPTION_KIND_BLOCKED, EXCEPTION_KIND_ADDED)

# External calendar connections
CALENDAR_PROVIDER_GOOGLE = "google"
CONNECTION_STATUS_ACTIVE = "active"
CONNECTION_STATUS_EXPIRED = "expired"
CONNECTION_STATUS_REVOKED = "revoked"
CONNECTION_STATUSES = (CONNECTION_STATUS_ACTIVE, CONNECTION_STATUS_EXPIRED, CONNECTION_STATUS_REVOKED)

GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/calendar.readonly",
    "openid",
    "email",
]

# Look-ahead window imported on every resync
CALENDAR_SYNC_DAYS_AHEAD = 30

# Scheduled pull and backoff after failed syncs
CALENDAR_SYNC_INTERVAL_MINUTES = 15
CALENDAR_SYNC_MAX_BACKOFF_MINUTES = 240

# Push channels are renewed when they expire within this window
CALENDAR_WEBHOOK_RENEWAL_HOURS = 24
CALENDAR_WEBHOOK_TTL_DAYS = 7

# Booking expiry job
BOOKING_EXPIRY_INTERVAL_MINUTES = 1
SCHEDULER_MAX_INSTANCES = 1  # Prevent overlapping scheduler runs
