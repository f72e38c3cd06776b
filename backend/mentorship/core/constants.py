# backend/mentorship/core/constants.py
"""Booking and payout policy constants."""

BRAND_NAME = "PeerHeal"

DEFAULT_TIMEZONE = "America/New_York"

# Slot generation
SLOT_GRANULARITY_MINUTES = 15
BOOKING_HORIZON_DAYS = 14
MIN_ADVANCE_BOOKING_HOURS = 24

# 1:1 calls
CALL_DURATIONS = (30, 60)
MIN_CALL_RATE = 40
MAX_CALL_RATE = 75
CALL_REFUND_CUTOFF_HOURS = 24

# Group sessions
GROUP_SESSION_DURATIONS = (45, 60, 90)
GROUP_SESSION_MIN_CAPACITY = 4
GROUP_SESSION_MAX_CAPACITY = 20
GROUP_SESSION_MIN_PRICE = 10
GROUP_SESSION_MAX_PRICE = 35
DEFAULT_MIN_ATTENDEES = 3
GROUP_SESSION_CANCEL_HOURS_BEFORE = 4
CONFLICT_BUFFER_HOURS = 2

# Revenue split
PLATFORM_FEE_PERCENT = 25
MENTOR_SHARE_PERCENT = 100 - PLATFORM_FEE_PERCENT

# Video rooms
ROOM_EXPIRY_PADDING_MINUTES = 120
ROOM_MIN_EXPIRY_MINUTES = 60

PROCEDURE_TYPES = (
    "ACL Reconstruction",
    "Ankle Reconstruction",
    "Carpal Tunnel Release",
    "Gallbladder Removal",
    "Hernia Repair",
    "Hysterectomy",
    "Laminectomy",
    "Meniscus Repair",
    "Rotator Cuff Repair",
    "Shoulder Labrum Repair",
    "Spinal Fusion",
    "Total Hip Replacement",
    "Total Knee Replacement",
    "Total Shoulder Replacement",
)
