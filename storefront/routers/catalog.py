from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.db import get_db
from storefront.deps import is_admin
from storefront.exceptions import NotFound
from storefront.services import catalog as catalog_service
from storefront.ui import render_page

router = APIRouter(tags=["catalog"])


def _int_param(request: Request, name: str, default: int) -> int:
    try:
        return max(1, int(request.query_params.get(name, default)))
    except ValueError:
        return default


@router.get("/products")
async def product_list(request: Request, db: Session = Depends(get_db)):
    search = request.query_params.get("search") or None
    filter_ = request.query_params.get("filter") or None

    products = catalog_service.list_products(
        db,
        search=search,
        filter=filter_,
        page=_int_param(request, "page", 1),
        per_page=settings.CATALOG_PER_PAGE,
    )

    return render_page(
        request,
        "Products/Index",
        {
            "products": products.to_props(),
            "isAdmin": is_admin(request),
            "filters": {"search": search, "filter": filter_},
        },
    )


@router.get("/products/{product_id}")
async def product_detail(product_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        product = catalog_service.get_product(db, product_id)
    except NotFound:
        raise HTTPException(status_code=404)

    return render_page(
        request,
        "Products/Show",
        {"product": product, "isAdmin": is_admin(request)},
    )
