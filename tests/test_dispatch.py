import pytest

from job_notifications import (
    AdminNewListingNotice,
    DispatchEngine,
    HookRegistry,
    JobListing,
    NotificationRegistry,
    OutboxTransport,
    StaticEnablement,
)
from job_notifications.config import FOOTER_HOOK, PLAIN_TEXT_HOOK, field_hook

KEY = "admin_notice_new_listing"


def listing(title="Senior Baker"):
    return JobListing(id=title.lower().replace(" ", "-"), title=title, company="Crumbs")


class BrokenNotice(AdminNewListingNotice):
    def subject(self):
        raise RuntimeError("boom")


class FailingTransport(OutboxTransport):
    def send(self, recipients, subject, body, headers, attachments):
        super().send(recipients, subject, body, headers, attachments)
        return False


class NothingEnabled(StaticEnablement):
    def is_enabled(self, key, default=True):
        return False


def make_engine(monkeypatch, transport=None, **kwargs):
    monkeypatch.setenv("NOTIFY_ADMIN_EMAIL", "admin@example.com")
    monkeypatch.delenv("NOTIFY_PLAIN_TEXT", raising=False)
    transport = transport or OutboxTransport()
    return DispatchEngine(transport, **kwargs), transport


def test_new_listing_sends_one_message_to_admin(monkeypatch):
    engine, transport = make_engine(monkeypatch)
    engine.schedule(KEY, {"job": listing()})
    engine.flush_all()

    assert len(transport.outbox) == 1
    message = transport.outbox[0]
    assert message.recipients == ["admin@example.com"]
    assert "Senior Baker" in message.subject
    assert message.headers == {"Content-Type": "text/html"}
    assert message.body.startswith("<p>A new job listing has been submitted: <strong>Senior Baker</strong></p>")
    assert message.attachments == []


def test_missing_listing_never_reaches_transport(monkeypatch):
    engine, transport = make_engine(monkeypatch)
    engine.schedule(KEY, {})
    engine.flush_all()
    assert transport.outbox == []


@pytest.mark.parametrize("key", ["not_registered", None, 7, ("admin_notice_new_listing",)])
def test_unknown_keys_are_skipped_silently(monkeypatch, key):
    engine, transport = make_engine(monkeypatch)
    engine.schedule(key, {"job": listing()})
    engine.flush_all()
    assert transport.outbox == []


def test_malformed_args_are_treated_as_empty(monkeypatch):
    engine, transport = make_engine(monkeypatch)
    engine.schedule(KEY, ["job", listing()])
    engine.flush_all()
    assert transport.outbox == []


def test_repeated_key_sends_each_in_schedule_order(monkeypatch):
    engine, transport = make_engine(monkeypatch)
    for title in ("First", "Second", "Third"):
        engine.schedule(KEY, {"job": listing(title)})
    engine.flush_all()

    assert [m.subject for m in transport.outbox] == [
        "New Job Listing Submitted: First",
        "New Job Listing Submitted: Second",
        "New Job Listing Submitted: Third",
    ]


def test_second_flush_sends_nothing_more(monkeypatch):
    engine, transport = make_engine(monkeypatch)
    engine.schedule(KEY, {"job": listing()})
    engine.flush_all()
    engine.flush_all()
    assert len(transport.outbox) == 1


def test_disabled_notifications_are_not_sent(monkeypatch):
    engine, transport = make_engine(monkeypatch, enablement=NothingEnabled())
    engine.schedule(KEY, {"job": listing()})
    engine.flush_all()
    assert transport.outbox == []


def test_field_filters_only_touch_their_own_key_and_field(monkeypatch):
    hooks = HookRegistry()
    hooks.add_filter(field_hook(KEY, "subject"), lambda value, event: value.upper())
    hooks.add_filter(field_hook(KEY, "from"), lambda value, event: "Jobs <jobs@example.com>")
    hooks.add_filter(field_hook("other", "subject"), lambda value, event: "wrong")
    engine, transport = make_engine(monkeypatch, hooks=hooks)

    engine.schedule(KEY, {"job": listing()})
    engine.flush_all()

    message = transport.outbox[0]
    assert message.subject == "NEW JOB LISTING SUBMITTED: SENIOR BAKER"
    assert message.headers["From"] == "Jobs <jobs@example.com>"
    assert message.recipients == ["admin@example.com"]


def test_plain_text_mode_drops_html_header(monkeypatch):
    hooks = HookRegistry()
    hooks.add_filter(PLAIN_TEXT_HOOK, lambda value: True)
    hooks.add_action(FOOTER_HOOK, lambda key, fields, plain_mode: "\n-- \nJob Board" if plain_mode else None)
    engine, transport = make_engine(monkeypatch, hooks=hooks)

    engine.schedule(KEY, {"job": listing()})
    engine.flush_all()

    message = transport.outbox[0]
    assert "Content-Type" not in message.headers
    assert message.body == (
        "A new job listing has been submitted: Senior Baker\n\nCompany: Crumbs"
        "\n-- \nJob Board"
    )


def test_plain_text_body_decodes_escaped_listing_fields(monkeypatch):
    hooks = HookRegistry()
    hooks.add_filter(PLAIN_TEXT_HOOK, lambda value: True)
    engine, transport = make_engine(monkeypatch, hooks=hooks)

    job = JobListing(id="tj", title="Tom & Jerry's", company="A & B")
    engine.schedule(KEY, {"job": job})
    engine.flush_all()

    body = transport.outbox[0].body
    assert "&amp;" not in body
    assert body == "A new job listing has been submitted: Tom & Jerry’s\n\nCompany: A & B"


def test_broken_notification_does_not_stop_the_rest(monkeypatch):
    engine, transport = make_engine(monkeypatch)
    engine.registry.register("broken", BrokenNotice, "Broken")

    engine.schedule("broken", {"job": listing("Broken")})
    engine.schedule(KEY, {"job": listing("Still Sent")})
    engine.flush_all()

    assert [m.subject for m in transport.outbox] == ["New Job Listing Submitted: Still Sent"]


def test_dispatch_one_reports_transport_result(monkeypatch):
    engine, transport = make_engine(monkeypatch, transport=FailingTransport())
    assert engine.dispatch_one(KEY, AdminNewListingNotice({"job": listing()})) is False
    assert len(transport.outbox) == 1

    engine.transport = OutboxTransport()
    assert engine.dispatch_one(KEY, AdminNewListingNotice({"job": listing()})) is True
    assert engine.dispatch_one(KEY, AdminNewListingNotice({})) is False


def test_scheduling_during_flush_waits_for_next_cycle(monkeypatch):
    engine, transport = make_engine(monkeypatch)

    class Rescheduling(OutboxTransport):
        def send(self, recipients, subject, body, headers, attachments):
            engine.schedule(KEY, {"job": listing("Follow Up")})
            return super().send(recipients, subject, body, headers, attachments)

    engine.transport = Rescheduling()
    engine.schedule(KEY, {"job": listing()})
    engine.flush_all()

    assert len(engine.transport.outbox) == 1
    assert engine.queue.pending() == 1


def test_cycle_flushes_even_when_block_raises(monkeypatch):
    engine, transport = make_engine(monkeypatch)

    with pytest.raises(ValueError):
        with engine.cycle():
            engine.schedule(KEY, {"job": listing()})
            raise ValueError("request failed")

    assert len(transport.outbox) == 1


def test_enablement_applies_to_an_injected_registry(monkeypatch):
    hooks = HookRegistry()
    registry = NotificationRegistry(hooks)
    engine, transport = make_engine(monkeypatch, hooks=hooks, registry=registry, enablement=NothingEnabled())

    assert engine.registry is registry
    engine.schedule(KEY, {"job": listing()})
    engine.flush_all()
    assert transport.outbox == []
