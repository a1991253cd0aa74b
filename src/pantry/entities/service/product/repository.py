"""Product repository for data access operations."""

from datetime import UTC, date, datetime, timedelta

from sqlalchemy import case
from sqlmodel import Session, col, select

from src.pantry.entities.service.product.entity import Product, ProductDraft
from src.pantry.entities.service.product.filters import (
    EXPIRING_SOON_DAYS,
    ExpiryFilter,
    SortOrder,
    end_of_month,
)
from src.pantry.entities.service.product.table import ProductTable


class ProductRepository:
    """Data-access layer for products.

    Returns ``Product`` entities, never table rows. The caller owns the
    transaction and decides when to commit.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, product_id: int) -> Product | None:
        row = self._session.get(ProductTable, product_id)
        if row is None:
            return None
        return Product.model_validate(row, from_attributes=True)

    def create(self, draft: ProductDraft) -> Product:
        row = ProductTable(
            name=draft.name,
            quantity=draft.quantity,
            unit=draft.unit,
            expiry_date=draft.expiry_as_date(),
        )
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return Product.model_validate(row, from_attributes=True)

    def update(self, product_id: int, draft: ProductDraft) -> Product | None:
        row = self._session.get(ProductTable, product_id)
        if row is None:
            return None

        row.name = draft.name
        row.quantity = draft.quantity
        row.unit = draft.unit
        row.expiry_date = draft.expiry_as_date()
        row.updated_at = datetime.now(UTC)
        self._session.add(row)
        self._session.flush()
        return Product.model_validate(row, from_attributes=True)

    def delete(self, product_id: int) -> bool:
        row = self._session.get(ProductTable, product_id)
        if row is None:
            return False
        self._session.delete(row)
        self._session.flush()
        return True

    def list_filtered(
        self,
        expiry_filter: ExpiryFilter | None = None,
        sort_order: SortOrder = SortOrder.ASC,
        today: date | None = None,
    ) -> list[Product]:
        """List products, filtered by expiry and ordered by expiry date.

        Ascending order puts undated products last, descending puts them
        first. Ties are broken by id.
        """
        today = today or date.today()
        expiry = col(ProductTable.expiry_date)
        statement = select(ProductTable)

        if expiry_filter is ExpiryFilter.WITH_DATE:
            statement = statement.where(expiry.is_not(None))
        elif expiry_filter is ExpiryFilter.WITHOUT_DATE:
            statement = statement.where(expiry.is_(None))
        elif expiry_filter is ExpiryFilter.EXPIRED:
            statement = statement.where(expiry.is_not(None), expiry < today)
        elif expiry_filter is ExpiryFilter.EXPIRING_SOON:
            statement = statement.where(
                expiry.is_not(None),
                expiry >= today,
                expiry <= today + timedelta(days=EXPIRING_SOON_DAYS),
            )
        elif expiry_filter is ExpiryFilter.EXPIRING_THIS_MONTH:
            statement = statement.where(
                expiry.is_not(None), expiry >= today, expiry <= end_of_month(today)
            )
        elif expiry_filter is ExpiryFilter.VALID:
            statement = statement.where(expiry.is_(None) | (expiry >= today))

        undated_rank = case((expiry.is_(None), 1), else_=0)
        if sort_order is SortOrder.DESC:
            statement = statement.order_by(
                undated_rank.desc(), expiry.desc(), col(ProductTable.id)
            )
        else:
            statement = statement.order_by(undated_rank, expiry, col(ProductTable.id))

        rows = self._session.exec(statement).all()
        return [Product.model_validate(row, from_attributes=True) for row in rows]
