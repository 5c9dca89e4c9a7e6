"""Order store port and its Protean-backed adapter.

The orchestration engine treats persistence as a plain key-value interface:
``load`` by id and ``save`` the whole record. Anything smarter (versioning,
retention) belongs to the concrete store.
"""

from abc import ABC, abstractmethod

from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError

from orchestration.domain import orchestration
from orchestration.exceptions import OrderNotFoundError
from orchestration.order.order import Order, OrderStatus


class OrderStore(ABC):
    """Abstract order store interface."""

    @abstractmethod
    def load(self, order_id: str) -> Order:
        """Return the order, or raise ``OrderNotFoundError``."""
        ...

    @abstractmethod
    def save(self, order: Order) -> None:
        """Persist the full order record."""
        ...

    @abstractmethod
    def find_by_customer(self, customer_id: str) -> list[Order]: ...

    @abstractmethod
    def find_by_status(self, status: OrderStatus | str) -> list[Order]: ...

    @abstractmethod
    def find_by_transaction_id(self, transaction_id: str) -> list[Order]: ...


@orchestration.repository(part_of=Order)
class OrderRepository:
    """Repository for the Order aggregate.

    Lookups return every match, oldest first.
    """

    def _matching(self, **criteria) -> list[Order]:
        return self.query.filter(**criteria).order_by("created_at").limit(None).all().items

    def find_by_customer(self, customer_id: str) -> list[Order]:
        return self._matching(customer_id=customer_id)

    def find_by_status(self, status: str) -> list[Order]:
        return self._matching(status=status)

    def find_by_transaction_id(self, transaction_id: str) -> list[Order]:
        return self._matching(payment_transaction_id=transaction_id)

    def count(self) -> int:
        return self.query.limit(None).all().total

    def delete_all(self) -> None:
        self._dao.delete_all()


class InMemoryOrderStore(OrderStore):
    """Store backed by the domain's repository on its memory provider.

    Every call runs inside the domain context, so the store works from any
    thread or task. Loaded orders are detached copies: mutating one never
    changes what is persisted until ``save``. Saving a copy that another
    writer has already superseded raises ``ExpectedVersionError``.
    """

    def __init__(self, domain: Domain = orchestration) -> None:
        self.domain = domain

    def load(self, order_id: str) -> Order:
        with self.domain.domain_context():
            try:
                return self.domain.repository_for(Order).get(order_id)
            except ObjectNotFoundError as exc:
                raise OrderNotFoundError(order_id) from exc

    def save(self, order: Order) -> None:
        with self.domain.domain_context():
            self.domain.repository_for(Order).add(order)

    def find_by_customer(self, customer_id: str) -> list[Order]:
        with self.domain.domain_context():
            return self.domain.repository_for(Order).find_by_customer(customer_id)

    def find_by_status(self, status: OrderStatus | str) -> list[Order]:
        with self.domain.domain_context():
            return self.domain.repository_for(Order).find_by_status(OrderStatus(status).value)

    def find_by_transaction_id(self, transaction_id: str) -> list[Order]:
        with self.domain.domain_context():
            return self.domain.repository_for(Order).find_by_transaction_id(transaction_id)

    def __len__(self) -> int:
        with self.domain.domain_context():
            return self.domain.repository_for(Order).count()

    def clear(self) -> None:
        with self.domain.domain_context():
            self.domain.repository_for(Order).delete_all()
