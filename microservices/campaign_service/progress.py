"""
Campaign Progress

Read-side projection of a campaign's contact rows into {total, processed}, and
the polling contract callers follow until the campaign settles.

There is no progress column: everything here is recomputed from the current
contacts on every read. `total` is "contacts known so far" and may grow between
reads while the workflow engine is still inserting rows.
"""

from typing import Iterable, Optional

from .models import (
    CampaignProgress,
    CampaignStatus,
    Contact,
    PollState,
)

POLL_INTERVAL_SECONDS = 3

# Values providers write into the email column when no address was found
PLACEHOLDER_EMAILS = frozenset({
    "",
    "n/a",
    "na",
    "-",
    "none",
    "null",
    "unknown",
    "email_not_unlocked@domain.com",
})


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def is_placeholder_email(email: Optional[str]) -> bool:
    if email is None:
        return True
    return email.strip().lower() in PLACEHOLDER_EMAILS


def is_contact_processed(contact: Contact) -> bool:
    """
    A contact counts as processed as soon as any enrichment signal lands.

    Signals: completed status, verified email, a real email, any name field,
    or a company.
    """
    if contact.status == "completed":
        return True
    if contact.email_verified:
        return True
    if not is_placeholder_email(contact.email):
        return True
    if _present(contact.first_name) or _present(contact.last_name):
        return True
    if _present(contact.company):
        return True
    return False


def compute_progress(contacts: Iterable[Contact]) -> CampaignProgress:
    """Count known and processed contacts"""
    total = 0
    processed = 0
    for contact in contacts:
        total += 1
        if is_contact_processed(contact):
            processed += 1
    return CampaignProgress(total=total, processed=processed)


def should_poll(status: CampaignStatus, progress: CampaignProgress) -> bool:
    """
    Keep reading while the engine is working or contacts are still filling in.

    Stops once the status is terminal and every known contact is processed
    (or there are none).
    """
    if status == CampaignStatus.PROCESSING:
        return True
    if progress.processed < progress.total:
        return True
    return False


def poll_state(status: CampaignStatus, progress: CampaignProgress) -> PollState:
    return PollState(
        should_poll=should_poll(status, progress),
        interval_seconds=POLL_INTERVAL_SECONDS,
    )


__all__ = [
    "POLL_INTERVAL_SECONDS",
    "PLACEHOLDER_EMAILS",
    "is_placeholder_email",
    "is_contact_processed",
    "compute_progress",
    "should_poll",
    "poll_state",
]
