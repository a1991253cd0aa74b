"""Product API router with CRUD operations."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from loguru import logger
from sqlmodel import Session

from src.pantry.api.http.deps import get_session
from src.pantry.entities.service.product import (
    ExpiryFilter,
    Product,
    ProductDraft,
    ProductRepository,
    SortOrder,
)

router = APIRouter(tags=["products"])


@router.get("", response_model=list[Product])
def list_products(
    filter: str | None = Query(default=None),
    sort_order: str | None = Query(default="asc", alias="sortOrder"),
    session: Session = Depends(get_session),
) -> list[Product]:
    """List products, optionally filtered and sorted by expiry date."""
    repository = ProductRepository(session)
    return repository.list_filtered(
        expiry_filter=ExpiryFilter.parse(filter),
        sort_order=SortOrder.parse(sort_order),
    )


@router.get("/{item_id}", response_model=Product)
def get_product(
    item_id: int,
    session: Session = Depends(get_session),
) -> Product:
    """Get a product by ID."""
    repository = ProductRepository(session)
    product = repository.get(item_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("", response_model=Product, status_code=status.HTTP_201_CREATED)
def create_product(
    draft: ProductDraft,
    response: Response,
    session: Session = Depends(get_session),
) -> Product:
    """Create a new product."""
    repository = ProductRepository(session)
    created_product = repository.create(draft)
    session.commit()
    logger.info("Created product {} ({})", created_product.id, created_product.name)
    response.headers["Location"] = f"/products/{created_product.id}"
    return created_product


@router.put("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def update_product(
    item_id: int,
    draft: ProductDraft,
    session: Session = Depends(get_session),
) -> Response:
    """Replace the fields of a product."""
    repository = ProductRepository(session)
    updated_product = repository.update(item_id, draft)
    if updated_product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    session.commit()
    logger.info("Updated product {}", item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    item_id: int,
    session: Session = Depends(get_session),
) -> Response:
    """Delete a product."""
    repository = ProductRepository(session)
    deleted = repository.delete(item_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Product not found")
    session.commit()
    logger.info("Deleted product {}", item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
