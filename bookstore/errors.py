"""Error taxonomy shared by the store, the services and the HTTP layer.

Every error knows its wire code, its message, the HTTP status it maps to and
whether a caller may retry it. Domain errors (not-found and business rules)
are never retryable; infrastructure and deadline errors may be retried by a
caller when the operation is idempotent.
"""


class BookstoreError(Exception):
    code = 0
    message = "internal error"
    status_code = 500
    retryable = False

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__(self.message if not detail else f"{self.message} {detail}")

    def to_dict(self) -> dict:
        msg = self.message if not self.detail else f"{self.message} {self.detail}"
        return {"error_code": self.code, "error_message": msg}


# --- domain errors ---

class DomainError(BookstoreError):
    pass


class NotFoundError(DomainError):
    status_code = 404


class BusinessRuleError(DomainError):
    status_code = 400


class BookNotFound(NotFoundError):
    code = 101
    message = "book not found"


class OrderNotFound(NotFoundError):
    code = 110
    message = "order not found"


class OrderNotAcceptingItems(BusinessRuleError):
    code = 111
    message = "order not accepting items"


class BookIsArchived(BusinessRuleError):
    code = 112
    message = "book status is archived"


class InsufficientInventory(BusinessRuleError):
    code = 113
    message = "inventory is insufficient for this order"


class BookNotAtOrder(BusinessRuleError):
    code = 114
    message = "book is not at the order"


# --- request validation errors ---

class RequestError(BookstoreError):
    status_code = 400


class BookEntryBlankFields(RequestError):
    code = 100
    message = "all the fields - name, price and inventory - must be filled correctly."


class EntryInvalidJSON(RequestError):
    code = 102
    message = "invalid json request."


class IdInvalidFormat(RequestError):
    code = 103
    message = "the endpoint is not a valid format ID. Must be a uuid."


class QueryPriceInvalid(RequestError):
    code = 104
    message = "query parameter 'price' must be a float between 0 and 9999.99"


class QuerySortInvalid(RequestError):
    code = 105
    message = ("query parameter 'sort_by' must be: name, price, inventory, created_at or updated_at. "
               "'sort_direction' must be asc or desc.")


class QueryPageInvalid(RequestError):
    code = 106
    message = "query parameter 'page' must be an int starting in 1. 'page_size' must be an int between 1 and 30."


class QueryPageOutOfRange(RequestError):
    code = 107
    message = "page out of range."


class UpdateOrderEntryBlankFields(RequestError):
    code = 116
    message = "all the fields - book_id and book_units_to_add - must be filled correctly."


class NewOrderEntryBlankFields(RequestError):
    code = 117
    message = "field purchaser_id must be filled correctly."


# --- infrastructure ---

class InfrastructureError(BookstoreError):
    code = 108
    message = "repository failure"
    retryable = True


class DeadlineExceeded(BookstoreError):
    code = 109
    message = "context deadline exceeded"
    status_code = 504
    retryable = True


class TransactionClosed(RuntimeError):
    """A transaction handle was used after commit or rollback."""


class NotificationFailed(Exception):
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"ntfy wrong response - want: 200 OK, got: {status_code}")
