"""
Charge Aggregator -- billable lines for a booking.

Pure functions; no I/O, no clock.  The caller resolves the booking's room
and room type and passes them in.

Rules:
    - One room-stay charge per booking: ``quantity`` is the number of
      nights (partial days round up, minimum one), ``unit_price`` is the
      room type's base rate, ``amount = quantity * unit_price``.
    - An unresolvable room or room type yields no room charge.
    - Stored ad hoc charges follow the room charge in the order given.
    - The room charge id is derived from the booking id, so repeated
      calls on an unchanged booking return equal lists.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time
from typing import Sequence

from hotel_engines.tracer import traced_engine
from hotel_kernel.domain.ledger import Booking, Charge, ChargeCategory, Room, RoomType

_SECONDS_PER_DAY = 86400


def _as_datetime(value: date, tzinfo) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None and tzinfo is not None:
            return value.replace(tzinfo=tzinfo)
        return value
    return datetime.combine(value, time.min, tzinfo=tzinfo)


def stay_nights(check_in: date, check_out: date) -> int:
    """Nights between check-in and check-out, partial days rounded up, at least 1."""
    if isinstance(check_in, datetime) or isinstance(check_out, datetime):
        tz = next(
            (v.tzinfo for v in (check_in, check_out)
             if isinstance(v, datetime) and v.tzinfo is not None),
            None,
        )
        start = _as_datetime(check_in, tz)
        end = _as_datetime(check_out, tz)
        nights = math.ceil((end - start).total_seconds() / _SECONDS_PER_DAY)
    else:
        nights = (check_out - check_in).days
    return max(nights, 1)


def room_charge_id(booking_id: str) -> str:
    return f"charge-{booking_id}"


@traced_engine("charges", "1.0", fingerprint_fields=("booking", "room_type"))
def compute_charges(
    *,
    booking: Booking,
    room: Room | None,
    room_type: RoomType | None,
    extra_charges: Sequence[Charge] = (),
) -> list[Charge]:
    """Ordered charges for a booking: the room-stay line, then ``extra_charges``."""
    charges: list[Charge] = []
    if room is not None and room_type is not None:
        nights = stay_nights(booking.check_in_date, booking.check_out_date)
        charges.append(
            Charge(
                id=room_charge_id(booking.id),
                booking_id=booking.id,
                description=f"Room - {room_type.name}",
                category=ChargeCategory.ROOM,
                quantity=nights,
                unit_price=room_type.base_rate,
                amount=room_type.base_rate * nights,
            )
        )
    charges.extend(extra_charges)
    return charges
