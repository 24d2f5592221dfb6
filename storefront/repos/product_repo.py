# storefront/repos/product_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.domain.errors import InsufficientStockError, NotFoundError
from storefront.repos.base import EntityStore


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db
        self.store = EntityStore(db, ProductModel)

    def get_by_id(self, product_id: int) -> ProductModel | None:
        return self.store.get(product_id)

    def get_for_update(self, product_id: int) -> ProductModel | None:
        return self.store.get_fresh(product_id, for_update=True)

    def get_by_code(self, code: str) -> ProductModel | None:
        return self.db.execute(
            select(ProductModel).where(ProductModel.code == code)
        ).scalar_one_or_none()

    def create(self, product: ProductModel) -> ProductModel:
        return self.store.add(product)

    def adjust_stock(self, product_id: int, delta: int) -> ProductModel:
        """
        Atomowa zmiana stanu magazynu.

        Warunek stock >= -delta jest w samym UPDATE, wiec dwie rownolegle
        transakcje nie zejda ponizej zera nawet przy slabszej izolacji,
        0 rows affected = za malo towaru (albo brak produktu).
        """
        stmt = update(ProductModel).where(ProductModel.id == product_id)
        if delta < 0:
            stmt = stmt.where(ProductModel.stock >= -delta)

        stmt = stmt.values(
            stock=ProductModel.stock + delta,
            version=ProductModel.version + 1,
        ).execution_options(synchronize_session=False)

        result = self.db.execute(stmt)

        if result.rowcount == 0:
            product = self.store.get_fresh(product_id)
            if product is None:
                raise NotFoundError("Product", product_id)
            raise InsufficientStockError(product.title, product.stock, -delta)

        return self.store.get_fresh(product_id)
