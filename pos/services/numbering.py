"""
Hospital number generation.

Numbers look like ``HOS20260001``: a configurable prefix, the calendar
year, and a zero padded counter that restarts every year.  The counter
lives in a single :class:`HospitalNumberSeries` row and is advanced with
a conditional update keyed on the values that were read, so two
registrations racing for the same value cannot both win.

The counter never hands out a number that a patient already carries
(imported records, rows created before the series existed): it always
starts past the highest number issued for the year.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from pos.models import HospitalNumberSeries, Patient

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


class NumberingConflict(RuntimeError):
    """The counter kept moving under us; the caller should retry the registration."""


def highest_issued(prefix: str, year: int) -> int:
    """Highest counter value already used by a patient for ``prefix`` and ``year`` (0 if none)."""
    stem = f"{prefix}{year}"
    highest = 0
    for number in Patient.objects.filter(hospital_number__startswith=stem).values_list('hospital_number', flat=True):
        tail = number[len(stem):]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return highest


def _series_for_update() -> HospitalNumberSeries:
    series = HospitalNumberSeries.objects.select_for_update().order_by('id').first()
    if series is None:
        prefix = getattr(settings, 'HOSPITAL_NUMBER_PREFIX', 'HOS')
        year = timezone.localdate().year
        series = HospitalNumberSeries.objects.create(
            prefix=prefix,
            padding=getattr(settings, 'HOSPITAL_NUMBER_PADDING', 4),
            year=year,
            counter=highest_issued(prefix, year) + 1,
        )
    return series


def format_hospital_number(prefix: str, year: int, value: int, padding: int) -> str:
    return f"{prefix}{year}{str(value).zfill(padding)}"


def next_hospital_number(*, today: Optional[date] = None) -> str:
    """Reserve and return the next hospital number.

    Call inside the same atomic block as the patient insert so that a
    failed registration does not burn a number.
    """
    year = (today or timezone.localdate()).year
    with transaction.atomic():
        series = _series_for_update()
        for _ in range(MAX_ATTEMPTS):
            value = series.counter if series.year == year else 1
            value = max(value, highest_issued(series.prefix, year) + 1)
            claimed = HospitalNumberSeries.objects.filter(
                pk=series.pk, year=series.year, counter=series.counter,
            ).update(year=year, counter=value + 1, updated_at=timezone.now())
            if claimed:
                number = format_hospital_number(series.prefix, year, value, series.padding)
                logger.info("hospital number %s reserved", number)
                return number
            series.refresh_from_db()
    raise NumberingConflict('hospital number counter changed concurrently')
