"""Notifications shipped with the job board."""
from __future__ import annotations

from html import escape
from typing import List, Optional

from . import config
from .models import JobListing, NotificationEvent


class AdminNewListingNotice(NotificationEvent):
    """Tells the site administrator a new job listing was submitted.

    Arguments: ``job`` (a :class:`JobListing`) and optionally
    ``admin_email``; without it ``NOTIFY_ADMIN_EMAIL`` is used.
    """

    def _job(self) -> Optional[JobListing]:
        job = self.args.get("job")
        return job if isinstance(job, JobListing) else None

    def subject(self) -> str:
        job = self._job()
        title = job.title if job else ""
        return f"New Job Listing Submitted: {title}"

    def sender(self) -> Optional[str]:
        return None

    def recipients(self) -> Optional[str]:
        explicit = self.args.get("admin_email")
        if isinstance(explicit, str) and explicit.strip():
            return explicit.strip()
        return config.admin_email()

    def rich_content(self) -> str:
        job = self._job()
        if job is None:
            return ""
        lines: List[str] = [
            f"A new job listing has been submitted: <strong>{escape(job.title, quote=False)}</strong>",
        ]
        details = []
        if job.company:
            details.append(f"Company: {escape(job.company, quote=False)}")
        if job.location:
            details.append(f"Location: {escape(job.location, quote=False)}")
        if job.author_email:
            details.append(f"Submitted by: {escape(job.author_email, quote=False)}")
        if details:
            lines.append("\n".join(details))
        if job.description:
            lines.append(escape(job.description, quote=False))
        if job.url:
            lines.append(f'<a href="{escape(job.url, quote=True)}">Review the listing</a>')
        return "\n\n".join(lines)

    def is_valid(self) -> bool:
        return self._job() is not None and bool(self.recipients())


CORE_NOTIFICATIONS = {
    "admin_notice_new_listing": {
        "handler": AdminNewListingNotice,
        "name": "Admin Notice of New Listing",
        "default_enabled": True,
    },
}
