"""Sequential, date-prefixed document numbers (e.g. ``DL-20250101-00001``)."""

from django.db.models.functions import Length
from django.utils import timezone


def number_prefix(prefix: str, today=None) -> str:
    today = today or timezone.localdate()
    return f"{prefix}-{today:%Y%m%d}-"


def next_number(queryset, *, prefix: str, field: str = "number", width: int = 5, today=None) -> str:
    """Return the next number for ``prefix`` and today's date.

    The sequence is the highest existing sequence under the same date prefix
    plus one. Call inside the transaction performing the insert; a unique
    constraint on ``field`` rejects the loser of a concurrent race.
    """

    head = number_prefix(prefix, today)
    # Longer sequences are larger: "-100000" must follow "-99999".
    last = (
        queryset.filter(**{f"{field}__startswith": head})
        .annotate(number_length=Length(field))
        .order_by("-number_length", f"-{field}")
        .values_list(field, flat=True)
        .first()
    )
    seq = 1
    if last:
        try:
            seq = int(last[len(head) :]) + 1
        except ValueError:
            seq = 1
    return f"{head}{seq:0{width}d}"
