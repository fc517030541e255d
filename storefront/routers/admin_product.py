import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.db import get_db
from storefront.deps import require_admin
from storefront.exceptions import NotFound, ValidationError
from storefront.schemas import ProductInput, parse_input
from storefront.services import catalog as catalog_service
from storefront.services import products as product_service
from storefront.ui import back, flash, flash_errors, listing_query, redirect, render_page

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])

logger = logging.getLogger(__name__)


def _product_or_404(db: Session, product_id: int):
    try:
        return catalog_service.get_product(db, product_id)
    except NotFound:
        raise HTTPException(status_code=404)


async def _product_form(request: Request) -> ProductInput:
    form = await request.form()
    payload = {
        key: form.get(key)
        for key in ("name", "description", "price", "stock_quantity", "image_url")
        if form.get(key) not in (None, "")
    }
    return parse_input(ProductInput, payload)


@router.get("/admin/products")
async def admin_product_list(request: Request, db: Session = Depends(get_db)):
    query = listing_query(request, sort="id", direction="desc", perPage=settings.ADMIN_PER_PAGE)

    products = catalog_service.admin_list_products(
        db,
        search=query.search,
        filter=query.filter,
        sort=query.sort,
        direction=query.direction,
        page=query.page,
        per_page=query.per_page,
    )

    return render_page(
        request,
        "Admin/Products/Index",
        {
            "products": products.to_props(),
            "filters": {
                "search": query.search,
                "sort": query.sort,
                "direction": query.direction,
                "perPage": query.per_page,
                "filter": query.filter,
            },
        },
    )


@router.get("/admin/products/create")
async def admin_product_create_form(request: Request):
    return render_page(request, "Admin/Products/Create")


@router.post("/admin/products")
async def admin_product_create(request: Request, db: Session = Depends(get_db)):
    try:
        data = await _product_form(request)
    except ValidationError as exc:
        flash_errors(request, exc.errors)
        return back(request, "/admin/products/create")

    product_service.create_product(db, data)
    flash(request, "success", "Product created successfully.")
    return redirect("/admin/products")


@router.get("/admin/products/{product_id}")
async def admin_product_show(product_id: int, request: Request, db: Session = Depends(get_db)):
    product = _product_or_404(db, product_id)
    return render_page(request, "Admin/Products/Show", {"product": product})


@router.get("/admin/products/{product_id}/edit")
async def admin_product_edit_form(product_id: int, request: Request, db: Session = Depends(get_db)):
    product = _product_or_404(db, product_id)
    return render_page(request, "Admin/Products/Edit", {"product": product})


@router.api_route("/admin/products/{product_id}", methods=["PUT", "PATCH"])
async def admin_product_update(product_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        data = await _product_form(request)
        product_service.update_product(db, product_id, data)
    except ValidationError as exc:
        flash_errors(request, exc.errors)
        return back(request, f"/admin/products/{product_id}/edit")
    except NotFound:
        raise HTTPException(status_code=404)

    flash(request, "success", "Product updated successfully.")
    return redirect("/admin/products")


@router.delete("/admin/products/{product_id}")
async def admin_product_delete(product_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        product_service.delete_product(db, product_id)
    except NotFound:
        raise HTTPException(status_code=404)

    flash(request, "success", "Product deleted successfully.")
    return redirect("/admin/products")
