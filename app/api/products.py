# app/api/products.py
# Каталог товаров: просмотр и добавление.
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.responses import api_response
from app.db.session import get_db
from app.schemas.product import ProductCreate
from app.services.product_service import ProductService

router = APIRouter()


def get_product_service(db: Session = Depends(get_db)) -> ProductService:
    return ProductService(db)


@router.get("")
def list_products(products: ProductService = Depends(get_product_service)):
    data = [product.as_dict() for product in products.list_products()]
    return api_response(status.HTTP_200_OK, data, "Products fetched successfully")


@router.get("/{product_id}")
def get_product(product_id: int, products: ProductService = Depends(get_product_service)):
    product = products.get_product(product_id)
    return api_response(status.HTTP_200_OK, product.as_dict(), "Product fetched successfully")


@router.post("")
def create_product(body: ProductCreate, products: ProductService = Depends(get_product_service)):
    product = products.create_product(
        title=body.title,
        price=body.price,
        stock=body.stock,
        description=body.description,
        image_path=body.image_path,
    )
    return api_response(status.HTTP_201_CREATED, product.as_dict(), "Product created successfully")
