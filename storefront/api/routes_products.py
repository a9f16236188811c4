from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from storefront.core.security import Actor, get_actor
from storefront.domain.catalog.service import CatalogService, product_to_dict
from storefront.persistence.pg import get_session

router = APIRouter(prefix="/products", tags=["catalog"])


class ProductCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    description: str = ""
    price: int = Field(gt=0)
    stock: int = Field(default=0, ge=0)
    category: str = ""
    image_url: list[str] = Field(default_factory=list)


class ProductUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    price: int | None = Field(default=None, gt=0)
    stock: int | None = Field(default=None, ge=0)
    category: str | None = None
    image_url: list[str] | None = None


@router.get("")
def list_products(
    category: str | None = Query(default=None),
    sort_by: Literal["name", "price", "created_at", "stock"] | None = Query(default=None),
    order: Literal["asc", "desc"] = Query(default="asc"),
    session: Session = Depends(get_session),
):
    rows = CatalogService(session).list_products(category=category, sort_by=sort_by, order=order)
    return {"count": len(rows), "products": [product_to_dict(row) for row in rows]}


@router.get("/{product_id}")
def get_product(product_id: str, session: Session = Depends(get_session)):
    return product_to_dict(CatalogService(session).get(product_id))


@router.post("")
def create_product(
    body: ProductCreateRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return product_to_dict(CatalogService(session).create(actor, body.model_dump()))


@router.patch("/{product_id}")
def update_product(
    product_id: str,
    body: ProductUpdateRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    return product_to_dict(CatalogService(session).update(actor, product_id, changes))


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    CatalogService(session).delete(actor, product_id)
    return {"deleted": True, "product_id": product_id}
