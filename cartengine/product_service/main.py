# cartengine/product_service/main.py
import uuid

from fastapi import FastAPI, HTTPException, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from cartengine.data.database import get_db
from cartengine.data.models import ProductModel, ProductVariantModel, product_categories

# katalog (dev mock) czytany z tej samej bazy co koszyki
app = FastAPI(title="Product Service (dev mock)")


@app.get("/products/{product_id}")
def get_product(product_id: uuid.UUID, db: Session = Depends(get_db)):
    product = db.get(ProductModel, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    variants = db.execute(
        select(ProductVariantModel).where(
            ProductVariantModel.product_id == product_id,
            ProductVariantModel.is_active.is_(True),
        )
    ).scalars()
    categories = db.execute(
        select(product_categories.c.category_id).where(product_categories.c.product_id == product_id)
    ).scalars()

    return {
        "id": str(product.id),
        "name": product.name,
        "sku": product.sku,
        "price": str(product.price),
        "stock_status": product.stock_status,
        "variants": [
            {"id": str(v.id), "name": v.name, "sku": v.sku, "price": str(v.price)}
            for v in variants
        ],
        "categories": [str(c) for c in categories],
    }
