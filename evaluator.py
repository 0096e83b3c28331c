"""Derive cache state from a stored record."""

import time

from models import Evaluation, RecordStatus


def evaluate(record, now=None):
    """Evaluate a CacheRecord (or None) at ``now``.

    Only ``valid`` records are subject to TTL; every other status is
    refreshable immediately. A valid record is due at exactly
    ``timestamp + ttl``.
    """
    now = int(time.time()) if now is None else now
    if record is None:
        return Evaluation(temperature=None, status=RecordStatus.UNAVAILABLE, needs_refresh=True)

    if record.status is not RecordStatus.VALID:
        return Evaluation(temperature=record.temperature, status=record.status, needs_refresh=True)

    # temperature may still be None here; callers null-check before formatting
    if now >= record.expires_at:
        return Evaluation(temperature=record.temperature, status=RecordStatus.EXPIRED, needs_refresh=True)
    return Evaluation(temperature=record.temperature, status=RecordStatus.VALID, needs_refresh=False)
