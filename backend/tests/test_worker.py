import quizdesk.worker as worker_module
from quizdesk.core.config import settings
from quizdesk.core.queue import get_queue


class _FakeWorker:
    started: list = []

    def __init__(self, queues, connection=None):
        self.queues = queues
        self.connection = connection

    def work(self):
        _FakeWorker.started.append(self.queues)


def test_queue_names_come_from_settings():
    assert get_queue().name == settings.rq_queue_default
    assert get_queue(settings.rq_queue_notifications).name == "quizdesk-notifications"


def test_worker_listens_on_notification_queue_first(monkeypatch):
    monkeypatch.delenv("RQ_WORKER_QUEUES", raising=False)
    monkeypatch.setattr(worker_module, "Worker", _FakeWorker)
    _FakeWorker.started.clear()

    worker_module.main()
    assert _FakeWorker.started == [[settings.rq_queue_notifications, settings.rq_queue_default]]


def test_worker_queue_override(monkeypatch):
    monkeypatch.setenv("RQ_WORKER_QUEUES", "a, b,,")
    monkeypatch.setattr(worker_module, "Worker", _FakeWorker)
    _FakeWorker.started.clear()

    worker_module.main()
    assert _FakeWorker.started == [["a", "b"]]
