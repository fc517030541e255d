from dataclasses import asdict, dataclass
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from storefront.exceptions import NotFound
from storefront.models.product import Product
from storefront.services.pagination import Page, paginate

# products at or below this level show up in the low stock listings
LOW_STOCK_LEVEL = 10

ADMIN_SORTABLE = {
    "id": Product.id,
    "name": Product.name,
    "price": Product.price,
    "stock_quantity": Product.stock_quantity,
    "created_at": Product.created_at,
}


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    description: str | None
    price: Decimal
    stock_quantity: int
    image_url: str | None = None

    @classmethod
    def of(cls, product: Product) -> "ProductSnapshot":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=Decimal(product.price or 0),
            stock_quantity=product.stock_quantity,
            image_url=product.image_url,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def list_products(
    db: Session,
    search: str | None = None,
    filter: str | None = None,
    page: int = 1,
    per_page: int = 15,
) -> Page:
    stmt = select(Product)
    if search:
        stmt = stmt.where(Product.name.ilike(f"%{search}%"))
    if filter == "low_stock":
        stmt = stmt.where(
            Product.stock_quantity <= LOW_STOCK_LEVEL, Product.stock_quantity > 0
        )
    stmt = stmt.order_by(Product.name.asc(), Product.id.asc())

    result = paginate(db, stmt, page, per_page, {"search": search, "filter": filter})
    return result.map(ProductSnapshot.of)


def admin_list_products(
    db: Session,
    search: str = "",
    filter: str = "",
    sort: str = "id",
    direction: str = "desc",
    page: int = 1,
    per_page: int = 10,
) -> Page:
    stmt = select(Product)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
        )
    if filter == "low_stock":
        stmt = stmt.where(Product.stock_quantity <= LOW_STOCK_LEVEL)

    column = ADMIN_SORTABLE.get(sort, Product.id)
    stmt = stmt.order_by(column.asc() if direction == "asc" else column.desc())

    result = paginate(
        db,
        stmt,
        page,
        per_page,
        {
            "search": search,
            "filter": filter,
            "sort": sort,
            "direction": direction,
            "perPage": per_page,
        },
    )
    return result.map(ProductSnapshot.of)


def get_product(db: Session, product_id: int) -> ProductSnapshot:
    product = db.get(Product, product_id)
    if not product:
        raise NotFound("Product", product_id)
    return ProductSnapshot.of(product)


def low_stock_products(db: Session) -> list[ProductSnapshot]:
    rows = (
        db.execute(
            select(Product)
            .where(Product.stock_quantity <= LOW_STOCK_LEVEL)
            .order_by(Product.stock_quantity.asc(), Product.id.asc())
        )
        .scalars()
        .all()
    )
    return [ProductSnapshot.of(p) for p in rows]


def count_products(db: Session) -> int:
    return db.execute(select(func.count(Product.id))).scalar_one()
