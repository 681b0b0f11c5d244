import pytest

from commandkit import NullCommandRecorder, configure_notifier, configure_recorder
from commandkit.context_inspect import configure_inspect

from command_classes import Entity


class FakeNotifier:
    def __init__(self):
        self.notified: list[BaseException] = []
        self.breadcrumbs: list[tuple[str, dict]] = []

    def notify(self, error):
        self.notified.append(error)

    def breadcrumb(self, data, label):
        self.breadcrumbs.append((label, data))


@pytest.fixture(autouse=True)
def notifier():
    fake = FakeNotifier()
    configure_notifier(fake)
    configure_recorder(NullCommandRecorder())
    Entity.registry.clear()
    yield fake
    configure_notifier(None)
    configure_recorder(None)
    configure_inspect(max_items=25, max_depth=4)
    Entity.registry.clear()
