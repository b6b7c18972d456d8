from flask import Flask

from job_notifications import JobListing, Notifications, OutboxTransport, get_engine, schedule_notification

KEY = "admin_notice_new_listing"


def make_app(monkeypatch):
    monkeypatch.setenv("NOTIFY_ADMIN_EMAIL", "admin@example.com")
    monkeypatch.delenv("NOTIFY_PLAIN_TEXT", raising=False)
    flask_app = Flask(__name__)
    outbox = OutboxTransport()
    Notifications(flask_app, transport=outbox)

    @flask_app.route("/ok")
    def ok():
        schedule_notification(KEY, {"job": JobListing(id="1", title="Welder")})
        assert outbox.outbox == []
        return "ok"

    @flask_app.route("/fails")
    def fails():
        schedule_notification(KEY, {"job": JobListing(id="2", title="Plumber")})
        raise RuntimeError("view blew up")

    return flask_app, outbox


def test_notifications_are_sent_after_the_request(monkeypatch):
    flask_app, outbox = make_app(monkeypatch)
    response = flask_app.test_client().get("/ok")

    assert response.status_code == 200
    assert [m.subject for m in outbox.outbox] == ["New Job Listing Submitted: Welder"]


def test_notifications_are_sent_when_the_view_raises(monkeypatch):
    flask_app, outbox = make_app(monkeypatch)
    flask_app.config["PROPAGATE_EXCEPTIONS"] = False
    response = flask_app.test_client().get("/fails")

    assert response.status_code == 500
    assert [m.subject for m in outbox.outbox] == ["New Job Listing Submitted: Plumber"]


def test_each_request_flushes_only_its_own_notifications(monkeypatch):
    flask_app, outbox = make_app(monkeypatch)
    client = flask_app.test_client()
    client.get("/ok")
    client.get("/ok")
    assert len(outbox.outbox) == 2


def test_init_app_registers_once(monkeypatch):
    flask_app, _ = make_app(monkeypatch)
    engine = get_engine(flask_app)

    assert Notifications(flask_app).init_app(flask_app) is engine
    assert len(flask_app.teardown_request_funcs[None]) == 1


def test_scheduling_outside_an_app_context_is_ignored():
    schedule_notification(KEY, {})
    assert get_engine() is None
