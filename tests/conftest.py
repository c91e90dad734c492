"""
Pytest fixtures for the billing reconciliation test suite.

Provides:
- Structured log configuration and capture
- In-memory SQLite engine and sessions with every billing table created
- Fact builders for pure engine tests and ORM builders for selector and
  service tests

Engine tests need no database.  Selector, service and job tests run against
an in-memory SQLite database created per test.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from billing_config.schema import BillingConfig
from billing_engines.inclusion import InclusionPolicy
from billing_engines.pipeline import ReconciliationPipeline
from billing_engines.rate_allocation import RateAllocator
from billing_kernel.db.engine import (
    create_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.domain.facts import (
    AddonChargeLine,
    NightlyChargeLine,
    PaymentLine,
    RateOverrideLine,
    ReservationFact,
)
from billing_kernel.domain.values import Currency
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.models import (
    Client,
    Hotel,
    Reservation,
    ReservationAddon,
    ReservationDetail,
    ReservationPayment,
    ReservationRate,
)

JPY = Currency("JPY")

HOTEL_ID = 1
CLIENT_ID = UUID("00000000-0000-4000-8000-00000000000c")

DEC_START = date(2025, 12, 1)
DEC_END = date(2025, 12, 31)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "fact_line_excluded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with every billing table."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session(db_engine) -> Session:
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture
def config() -> BillingConfig:
    return BillingConfig()


@pytest.fixture
def pipeline() -> ReconciliationPipeline:
    return ReconciliationPipeline(
        policy=InclusionPolicy(),
        allocator=RateAllocator(currency=JPY),
        tolerance=JPY.rounding_tolerance,
    )


# =============================================================================
# Fact builders (pure DTOs)
# =============================================================================


def make_reservation(
    hotel_id: int = HOTEL_ID,
    client_id: UUID = CLIENT_ID,
    check_in: date = date(2025, 12, 10),
    check_out: date = date(2025, 12, 11),
    status: str = "confirmed",
    type: str = "default",
    id: UUID | None = None,
) -> ReservationFact:
    return ReservationFact(
        id=id or uuid4(),
        hotel_id=hotel_id,
        client_id=client_id,
        check_in=check_in,
        check_out=check_out,
        status=status,
        type=type,
    )


_line_ids = iter(range(1, 10_000_000))


def make_charge(
    reservation: ReservationFact,
    on_date: date | None = None,
    price: str | Decimal = "10000",
    pricing_mode: str = "per_room",
    occupants: int = 1,
    billable: bool = True,
    cancelled: bool = False,
    id: int | None = None,
) -> NightlyChargeLine:
    return NightlyChargeLine(
        id=id if id is not None else next(_line_ids),
        reservation_id=reservation.id,
        hotel_id=reservation.hotel_id,
        date=on_date or reservation.check_in,
        price=Decimal(price),
        pricing_mode=pricing_mode,
        occupants=occupants,
        billable=billable,
        cancelled=cancelled,
    )


def make_override(
    line: NightlyChargeLine,
    tax_rate: str | None,
    price: str | Decimal,
    id: int | None = None,
) -> RateOverrideLine:
    return RateOverrideLine(
        id=id,
        nightly_charge_id=line.id,
        tax_rate=Decimal(tax_rate) if tax_rate is not None else None,
        price=Decimal(price),
    )


def make_addon(
    line: NightlyChargeLine,
    price: str | Decimal = "1500",
    quantity: int = 1,
    tax_rate: str | None = "0.08",
    parent_cancelled: bool | None = None,
) -> AddonChargeLine:
    return AddonChargeLine(
        id=next(_line_ids),
        nightly_charge_id=line.id,
        reservation_id=line.reservation_id,
        hotel_id=line.hotel_id,
        date=line.date,
        price=Decimal(price),
        quantity=quantity,
        tax_rate=Decimal(tax_rate) if tax_rate is not None else None,
        billable=line.billable,
        parent_cancelled=line.cancelled if parent_cancelled is None else parent_cancelled,
    )


def make_payment(
    reservation: ReservationFact,
    on_date: date,
    value: str | Decimal = "10000",
) -> PaymentLine:
    return PaymentLine(
        id=next(_line_ids),
        reservation_id=reservation.id,
        hotel_id=reservation.hotel_id,
        date=on_date,
        value=Decimal(value),
        check_in=reservation.check_in,
    )


# =============================================================================
# ORM builders
# =============================================================================


class FactStore:
    """Writes hotels, clients, reservations and their lines through a session."""

    def __init__(self, session: Session):
        self.session = session

    def hotel(self, hotel_id: int = HOTEL_ID, name: str = "Hotel Sakura") -> Hotel:
        hotel = self.session.get(Hotel, hotel_id)
        if hotel is None:
            hotel = Hotel(id=hotel_id, name=name)
            self.session.add(hotel)
            self.session.flush()
        return hotel

    def client(self, client_id: UUID | None = None, name: str = "Yamada Taro") -> Client:
        client = Client(id=client_id or uuid4(), name=name)
        self.session.add(client)
        self.session.flush()
        return client

    def reservation(
        self,
        client: Client,
        hotel_id: int = HOTEL_ID,
        check_in: date = date(2025, 12, 10),
        check_out: date = date(2025, 12, 11),
        status: str = "confirmed",
        type: str = "default",
    ) -> Reservation:
        self.hotel(hotel_id)
        reservation = Reservation(
            hotel_id=hotel_id,
            reservation_client_id=client.id,
            check_in=check_in,
            check_out=check_out,
            status=status,
            type=type,
        )
        self.session.add(reservation)
        self.session.flush()
        return reservation

    def night(
        self,
        reservation: Reservation,
        on_date: date | None = None,
        price: str = "10000",
        plan_type: str = "per_room",
        people: int = 1,
        billable: bool = True,
        cancelled: bool = False,
    ) -> ReservationDetail:
        detail = ReservationDetail(
            hotel_id=reservation.hotel_id,
            reservation_id=reservation.id,
            date=on_date or reservation.check_in,
            plan_type=plan_type,
            number_of_people=people,
            price=Decimal(price),
            billable=billable,
            cancelled=uuid4() if cancelled else None,
        )
        self.session.add(detail)
        self.session.flush()
        return detail

    def rate(
        self, detail: ReservationDetail, tax_rate: str | None, price: str,
    ) -> ReservationRate:
        rate = ReservationRate(
            hotel_id=detail.hotel_id,
            reservation_details_id=detail.id,
            tax_rate=Decimal(tax_rate) if tax_rate is not None else None,
            price=Decimal(price),
        )
        self.session.add(rate)
        self.session.flush()
        return rate

    def addon(
        self,
        detail: ReservationDetail,
        price: str = "1500",
        quantity: int = 1,
        tax_rate: str | None = "0.08",
    ) -> ReservationAddon:
        addon = ReservationAddon(
            hotel_id=detail.hotel_id,
            reservation_detail_id=detail.id,
            addon_name="breakfast",
            price=Decimal(price),
            quantity=quantity,
            tax_rate=Decimal(tax_rate) if tax_rate is not None else None,
        )
        self.session.add(addon)
        self.session.flush()
        return addon

    def payment(
        self,
        reservation: Reservation,
        on_date: date,
        value: str = "10000",
        hotel_id: int | None = None,
    ) -> ReservationPayment:
        payment = ReservationPayment(
            hotel_id=hotel_id or reservation.hotel_id,
            reservation_id=reservation.id,
            date=on_date,
            value=Decimal(value),
            payment_type="cash",
        )
        self.session.add(payment)
        self.session.flush()
        return payment


@pytest.fixture
def store(session) -> FactStore:
    return FactStore(session)


# =============================================================================
# Seeded December scenario
# =============================================================================

CLIENT_A = UUID(int=0xA)
CLIENT_B = UUID(int=0xB)
CLIENT_C = UUID(int=0xC)
CLIENT_D = UUID(int=0xD)


@pytest.fixture
def december_facts(session, store):
    """
    Committed facts for December 2025 across two hotels.

    Hotel 1:
        A  one night 10,000 split 6,500 @ 10% / 3,000 @ 8%, paid 10,000  -> settled
        B  one night 20,000 without rate rows, paid 5,000             -> outstanding
        C  stay from Jan 5, paid 8,000 on Dec 20                       -> advance paid
    Hotel 2:
        D  one per-person night 6,000 x 2, paid 12,000                -> settled
    """
    store.hotel(1)
    store.hotel(2, name="Hotel Momiji")
    a, b, c, d = (
        store.client(client_id=CLIENT_A, name="A"),
        store.client(client_id=CLIENT_B, name="B"),
        store.client(client_id=CLIENT_C, name="C"),
        store.client(client_id=CLIENT_D, name="D"),
    )

    res_a = store.reservation(a, check_in=date(2025, 12, 10), check_out=date(2025, 12, 11))
    night_a = store.night(res_a, price="10000")
    store.rate(night_a, "0.08", "3000")
    store.rate(night_a, "0.10", "6500")
    store.payment(res_a, date(2025, 12, 15), "10000")

    res_b = store.reservation(b, check_in=date(2025, 12, 20), check_out=date(2025, 12, 21))
    store.night(res_b, price="20000")
    store.payment(res_b, date(2025, 12, 20), "5000")

    res_c = store.reservation(c, check_in=date(2026, 1, 5), check_out=date(2026, 1, 6))
    store.night(res_c, price="8000")
    store.payment(res_c, date(2025, 12, 20), "8000")

    res_d = store.reservation(
        d, hotel_id=2, check_in=date(2025, 12, 5), check_out=date(2025, 12, 6),
    )
    store.night(res_d, price="6000", plan_type="per_person", people=2)
    store.payment(res_d, date(2025, 12, 5), "12000")

    session.commit()
    return {"A": res_a, "B": res_b, "C": res_c, "D": res_d}
