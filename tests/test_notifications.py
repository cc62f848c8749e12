from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from bookstore.domain import Book, utcnow
from bookstore.errors import NotificationFailed
from bookstore.services.books import BookService
from bookstore.services.notifications import Ntfy
from bookstore.store import MemoryStore


def recording_client(status_code=200):
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(status_code)

    return httpx.Client(transport=httpx.MockTransport(handler)), sent


class TestNtfy:
    def test_book_created_posts_message(self):
        client, sent = recording_client()
        ntfy = Ntfy("https://ntfy.sh/bookstore", client=client)

        assert ntfy.book_created("Dune", 10) is True

        assert len(sent) == 1
        assert sent[0].method == "POST"
        assert str(sent[0].url) == "https://ntfy.sh/bookstore/New_book_created"
        assert sent[0].content.decode() == "New book created:\nTitle: Dune\nInventory: 10"

    def test_trailing_slash_in_base_url(self):
        client, sent = recording_client()

        Ntfy("https://ntfy.sh/bookstore/", client=client).book_created("Dune", 1)

        assert str(sent[0].url) == "https://ntfy.sh/bookstore/New_book_created"

    def test_non_200_reply(self):
        client, _ = recording_client(status_code=500)

        with pytest.raises(NotificationFailed) as exc:
            Ntfy("https://ntfy.sh/bookstore", client=client).book_created("Dune", 1)

        assert exc.value.status_code == 500
        assert "got: 500" in str(exc.value)

    def test_disabled(self):
        client, sent = recording_client()

        assert Ntfy("https://ntfy.sh/bookstore", enabled=False, client=client).book_created("Dune", 1) is False
        assert sent == []

    @pytest.mark.parametrize("url", ["http://ntfy.sh/bookstore", "https://example.com/topic", ""])
    def test_base_url_must_be_ntfy(self, url):
        with pytest.raises(ValueError):
            Ntfy(url)


class TestBookServiceNotification:
    def book(self):
        now = utcnow()
        return Book(id=uuid4(), name="Dune", price=Decimal("1.00"), inventory=3,
                    created_at=now, updated_at=now)

    def test_failed_delivery_is_not_raised(self):
        client, sent = recording_client(status_code=503)
        svc = BookService(MemoryStore(), Ntfy("https://ntfy.sh/bookstore", client=client))

        svc.notify_created(self.book())

        assert len(sent) == 1

    def test_transport_error_is_not_raised(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        svc = BookService(MemoryStore(), Ntfy("https://ntfy.sh/bookstore", client=client))

        svc.notify_created(self.book())

    def test_without_notifier(self):
        BookService(MemoryStore()).notify_created(self.book())
