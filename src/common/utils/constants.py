# cancellations at least this far ahead get a full refund
FULL_REFUND_HOURS = 24

# minor units per major unit
CURRENCY = "usd"
MINOR_UNITS_PER_MAJOR = 100

STRIPE_TIMEOUT_SECONDS = 8
STRIPE_MAX_NETWORK_RETRIES = 1

MAX_COMMIT_ATTEMPTS = 3
NOTIFICATION_WORKERS = 2

MAX_BOOKING_DURATION_DAYS = 365
