import logging

from sqlalchemy.orm import Session

from storefront.exceptions import NotFound
from storefront.models.product import Product
from storefront.schemas import ProductInput
from storefront.services.catalog import ProductSnapshot
from storefront.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def create_product(db: Session, data: ProductInput) -> ProductSnapshot:
    with unit_of_work(db) as uow:
        product = Product(
            name=data.name,
            description=data.description,
            price=data.price,
            stock_quantity=data.stock_quantity,
            image_url=data.image_url or None,
        )
        uow.session.add(product)
        uow.session.flush()
    logger.info("Product %s created (%s)", product.id, product.name)
    return ProductSnapshot.of(product)


def update_product(db: Session, product_id: int, data: ProductInput) -> ProductSnapshot:
    product = db.get(Product, product_id)
    if not product:
        raise NotFound("Product", product_id)

    with unit_of_work(db):
        product.name = data.name
        product.description = data.description
        product.price = data.price
        product.stock_quantity = data.stock_quantity
        if data.image_url:
            product.image_url = data.image_url
    logger.info("Product %s updated", product.id)
    return ProductSnapshot.of(product)


def delete_product(db: Session, product_id: int) -> None:
    product = db.get(Product, product_id)
    if not product:
        raise NotFound("Product", product_id)

    with unit_of_work(db) as uow:
        uow.session.delete(product)
    logger.info("Product %s deleted", product_id)
