"""
Validity window and serial number policy.
"""
import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..models.certificate import ValidityWindow

CA_VALIDITY = timedelta(days=365.25 * 20)
LEAF_VALID_DAYS = 365
RSA_VALID_YEARS = 10
CLOCK_SKEW_ALLOWANCE = timedelta(days=-1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def add_years(moment: datetime, years: int) -> datetime:
    """Calendar-year addition; 29 February falls back to 28 February."""
    year = moment.year + years
    day = min(moment.day, calendar.monthrange(year, moment.month)[1])
    return moment.replace(year=year, day=day)


def compute_window(requested_span: timedelta,
                   issuer_window: Optional[ValidityWindow] = None,
                   base_offset: timedelta = timedelta(0),
                   anchor: Optional[datetime] = None) -> ValidityWindow:
    """
    Compute a validity window and clamp it to the issuer's.

    notBefore is ``anchor + base_offset`` and notAfter is
    ``anchor + requested_span``. The anchor defaults to the current UTC time.

    Raises:
        InvalidValidityWindowError: If the window (after clamping) is inverted or empty
    """
    if anchor is None:
        anchor = utc_now()

    window = ValidityWindow(
        not_before=anchor + base_offset,
        not_after=anchor + requested_span,
    )
    if issuer_window is not None:
        window = window.clamp_to(issuer_window)
    return window


def ca_window(requested_span: Optional[timedelta] = None,
              issuer_window: Optional[ValidityWindow] = None,
              now: Optional[datetime] = None) -> ValidityWindow:
    """Root/intermediate window anchored at the start of the current UTC day."""
    anchor = start_of_day(now or utc_now())
    return compute_window(requested_span or CA_VALIDITY, issuer_window, anchor=anchor)


def leaf_window(valid_days: int = LEAF_VALID_DAYS,
                issuer_window: Optional[ValidityWindow] = None,
                now: Optional[datetime] = None) -> ValidityWindow:
    """Leaf window starting one day in the past to tolerate clock skew."""
    return compute_window(
        timedelta(days=valid_days),
        issuer_window,
        base_offset=CLOCK_SKEW_ALLOWANCE,
        anchor=now or utc_now(),
    )


def rsa_window(issuer_window: Optional[ValidityWindow] = None,
               now: Optional[datetime] = None) -> ValidityWindow:
    """Yesterday until ten calendar years from today, both at day granularity."""
    today = start_of_day(now or utc_now())
    return compute_window(
        add_years(today, RSA_VALID_YEARS) - today,
        issuer_window,
        base_offset=CLOCK_SKEW_ALLOWANCE,
        anchor=today,
    )


def compute_serial(now: Optional[datetime] = None) -> bytes:
    """
    Serial number bytes: the Unix timestamp in seconds, little-endian, 8 bytes.

    Two issuances within the same second produce the same serial.
    """
    moment = now or utc_now()
    return int(moment.timestamp()).to_bytes(8, "little", signed=True)


def serial_to_int(serial: bytes) -> int:
    """Interpret serial bytes as an unsigned big-endian integer, as written into the certificate."""
    return int.from_bytes(serial, "big")
