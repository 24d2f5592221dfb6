# storefront/services/product_service.py
import secrets

from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.domain.errors import BusinessError, NotFoundError
from storefront.domain.schemas import ProductCreate
from storefront.repos.product_repo import ProductRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

_CODE_ATTEMPTS = 10


class ProductService:
    """Katalog: tylko to czego potrzebuje sklad zamowien (odczyt, dodanie, korekta stanu)."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProductRepo(db)

    def _generate_code(self) -> str:
        for _ in range(_CODE_ATTEMPTS):
            code = f"{secrets.randbelow(10 ** 12):012d}"
            if not self.repo.get_by_code(code):
                return code
        raise BusinessError("Could not generate a unique product code")

    def create_product(self, payload: ProductCreate) -> ProductModel:
        try:
            product = self.repo.create(
                ProductModel(
                    title=payload.title,
                    description=payload.description,
                    code=self._generate_code(),
                    price=payload.price,
                    stock=payload.stock,
                    category=payload.category,
                    thumbnails=list(payload.thumbnails),
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Product {product.id} ({product.code}) created")
        return product

    def get_product(self, product_id: int) -> ProductModel:
        product = self.repo.get_by_id(product_id)
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def adjust_stock(self, product_id: int, delta: int) -> ProductModel:
        try:
            product = self.repo.adjust_stock(product_id, delta)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Product {product_id} stock adjusted by {delta}, now {product.stock}")
        return product
