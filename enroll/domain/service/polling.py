"""Status polling cadence."""

from enroll.domain.value import RequestStatus


def next_poll_interval(
    status: RequestStatus | None,
    pending_interval: float = 2.0,
    accepted_interval: float = 5.0,
) -> float | None:
    """Seconds until the next status fetch, or None to stop polling.

    Args:
        status: Last observed request status (None before the first fetch)
        pending_interval: Cadence while pending (or unknown)
        accepted_interval: Cadence while accepted

    Returns:
        Interval in seconds, None for terminal statuses
    """
    if status is None or status == RequestStatus.PENDING:
        return pending_interval
    if status == RequestStatus.ACCEPTED:
        return accepted_interval
    return None
