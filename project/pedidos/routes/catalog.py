# pedidos/routes/catalog.py

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from pedidos.routes.auth import staff_user
from pedidos.schemas.order import BikerCreate, EmpresaCreate
from pedidos.services.catalog import (
    client_info_service,
    create_biker_service,
    create_empresa_service,
    read_template_service,
)

router = APIRouter()


@router.post("/empresas", summary="Добавить компанию-клиента")
async def create_empresa(request: Request, empresa: EmpresaCreate, _=Depends(staff_user)):
    try:
        return await create_empresa_service(empresa.model_dump(by_alias=True), request)
    except Exception as e:
        await request.app.state.log.log_error("catalog", f"Ошибка при добавлении компании: {str(e)}")
        raise


@router.post("/bikers", summary="Добавить байкера")
async def create_biker(request: Request, biker: BikerCreate, _=Depends(staff_user)):
    try:
        return await create_biker_service(biker.model_dump(by_alias=True), request)
    except Exception as e:
        await request.app.state.log.log_error("catalog", f"Ошибка при добавлении байкера: {str(e)}")
        raise


@router.get(
    "/client-info/{client_name}",
    summary="Информация о клиенте по имени",
    responses={500: {"description": "CLIENT_INFO_SHEET_ID не настроен"}},
)
async def client_info(client_name: str, request: Request, _=Depends(staff_user)):
    try:
        return await client_info_service(client_name, request)
    except Exception as e:
        await request.app.state.log.log_error("catalog", f"Ошибка при поиске клиента: {str(e)}", {"client": client_name})
        raise


@router.get(
    "/empresas/leer-sheet",
    summary="Строки «Plantilla Empresas» с фильтром по датам",
    responses={400: {"description": "SHEET_ID не настроен или дата не YYYY-MM-DD"}},
)
async def read_template(
    request: Request,
    fechaInicio: Optional[str] = Query(None),
    fechaFin: Optional[str] = Query(None),
    _=Depends(staff_user),
):
    try:
        return await read_template_service(fechaInicio, fechaFin, request)
    except Exception as e:
        await request.app.state.log.log_error(
            "catalog", f"Ошибка при чтении Plantilla Empresas: {str(e)}", {"fechaInicio": fechaInicio, "fechaFin": fechaFin}
        )
        raise
