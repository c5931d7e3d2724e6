# pedidos/schemas/inventory.py

from pydantic import BaseModel
from typing import Optional, Union


class StockUpdate(BaseModel):
    """Новый остаток товара; codigo ищется в колонке «Código»."""
    codigo: Optional[Union[int, str]] = None
    stockActual: Optional[Union[int, float, str]] = None
