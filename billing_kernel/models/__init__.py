"""
ORM models for the billing fact tables.

Importing this package registers every table on ``Base.metadata``.
"""

from billing_kernel.models.charges import (
    ReservationAddon,
    ReservationDetail,
    ReservationRate,
)
from billing_kernel.models.hotel import Client, Hotel
from billing_kernel.models.payment import ReservationPayment
from billing_kernel.models.reservation import Reservation

__all__ = [
    "Client",
    "Hotel",
    "Reservation",
    "ReservationAddon",
    "ReservationDetail",
    "ReservationPayment",
    "ReservationRate",
]
