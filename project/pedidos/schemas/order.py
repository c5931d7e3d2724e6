# pedidos/schemas/order.py

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional, Union


class OrderStatusUpdate(BaseModel):
    """
    Тело устаревшего PUT /api/update-order-status.
    Поля необязательные: отсутствие orderId/newStatus → 400 в роуте.
    """
    orderId: Optional[Union[int, str]] = None
    newStatus: Optional[str] = None
    additionalData: Optional[dict[str, Any]] = None


class ClientOrderCreated(BaseModel):
    idPedidoCliente: Optional[Union[int, str]] = None
    idPedidoOficial: Optional[Union[int, str]] = None


class ClientOrderCancel(BaseModel):
    idPedido: Optional[Union[int, str]] = None


class EmpresaCreate(BaseModel):
    """Строка таблицы компаний, ключи совпадают с заголовками колонок."""
    model_config = ConfigDict(populate_by_name=True)

    fecha: Optional[str] = Field(None, alias="Fecha")
    operador: Optional[str] = Field(None, alias="Operador")
    empresa: Optional[str] = Field(None, alias="Empresa")
    mapa: Optional[str] = Field(None, alias="Mapa")
    descripcion: Optional[str] = Field(None, alias="Descripción")


class BikerCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    biker: Optional[str] = Field(None, alias="Biker")
    whatsapp: Optional[str] = Field(None, alias="Whatsapp")
