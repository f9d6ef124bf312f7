"""Test doubles and catalog seed helpers shared by the test modules."""


class RecordingNotifier:
    """Notifier that keeps every event it is asked to deliver."""

    def __init__(self):
        self.events = []

    async def notify(self, user_id, event_kind, match_id):
        self.events.append((user_id, event_kind, match_id))

    def for_user(self, user_id):
        return [(kind, match_id) for uid, kind, match_id in self.events if uid == user_id]


class FailingNotifier:
    async def notify(self, user_id, event_kind, match_id):
        raise RuntimeError("notification service down")


async def offer(catalog, user, title, author, **extra):
    data = {"kind": "offered", "title": title, "author": author, "condition": "good"}
    data.update(extra)
    return await catalog.add_book(user.id, data)


async def want(catalog, user, title, author, **extra):
    data = {"kind": "wanted", "title": title, "author": author}
    data.update(extra)
    return await catalog.add_book(user.id, data)
