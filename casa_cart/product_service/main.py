# casa_cart/product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")

# prices in the same wrapped decimal form the catalog db exports
PRODUCTS = {
    "64b5f301a1c2d3e4f5a6b701": {
        "id": "64b5f301a1c2d3e4f5a6b701",
        "name": "Linen Shirt",
        "price": {"$numberDecimal": "199.00"},
    },
    "64b5f301a1c2d3e4f5a6b702": {
        "id": "64b5f301a1c2d3e4f5a6b702",
        "name": "Denim Jacket",
        "price": {"$numberDecimal": "1499.50"},
    },
    "64b5f301a1c2d3e4f5a6b703": {
        "id": "64b5f301a1c2d3e4f5a6b703",
        "name": "Canvas Tote",
        "price": {"$numberDecimal": "349.99"},
    },
}


@app.get("/products/{product_id}")
def get_product(product_id: str):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
