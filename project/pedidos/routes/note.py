# pedidos/routes/note.py

from fastapi import APIRouter, Depends, HTTPException, Request, status

from pedidos.routes.auth import staff_user
from pedidos.schemas.note import NoteCreate, NoteResolve, NoteUpdate
from pedidos.services.note import (
    read_notes_service,
    pending_count_service,
    create_note_service,
    update_note_service,
    resolve_note_service,
    unresolve_note_service,
    delete_note_service,
)

router = APIRouter()


# ────────────── READ ──────────────
@router.get(
    "",
    summary="Список заметок",
    response_description="Заметки с исходными и нормализованными ключами",
)
async def read_notes(request: Request, _=Depends(staff_user)):
    try:
        return await read_notes_service(request)
    except Exception as e:
        await request.app.state.log.log_error("note", f"Ошибка при чтении заметок: {str(e)}")
        raise


@router.get("/pending-count", summary="Количество нерешённых заметок")
async def pending_count(request: Request, _=Depends(staff_user)):
    return await pending_count_service(request)


# ────────────── CREATE ──────────────
@router.post(
    "",
    status_code=status.HTTP_200_OK,
    summary="Создать заметку",
    responses={400: {"description": "Нет descripcion или operador"}},
)
async def create_note(request: Request, note: NoteCreate, _=Depends(staff_user)):
    if not note.descripcion or not note.operador:
        raise HTTPException(status_code=400, detail="Descripción y operador son requeridos")
    try:
        return await create_note_service(note.descripcion, note.operador, note.estado, request)
    except Exception as e:
        await request.app.state.log.log_error("note", f"Ошибка при создании заметки: {str(e)}")
        raise


# ────────────── UPDATE ──────────────
@router.put(
    "/{note_id}",
    summary="Изменить описание заметки",
    responses={
        400: {"description": "Нет описания или заметка не в статусе Pendiente"},
        404: {"description": "Заметка не найдена"},
    },
)
async def update_note(note_id: str, request: Request, note: NoteUpdate, _=Depends(staff_user)):
    if not note.descripcion:
        raise HTTPException(status_code=400, detail="La descripción es requerida")
    try:
        return await update_note_service(note_id, note.descripcion, request)
    except Exception as e:
        await request.app.state.log.log_error("note", f"Ошибка при обновлении заметки: {str(e)}", {"id": note_id})
        raise


@router.put(
    "/{note_id}/resolve",
    summary="Отметить заметку решённой",
    responses={400: {"description": "Нет resuelto_por"}, 404: {"description": "Заметка не найдена"}},
)
async def resolve_note(note_id: str, request: Request, body: NoteResolve, _=Depends(staff_user)):
    if not body.resuelto_por:
        raise HTTPException(status_code=400, detail="El campo resuelto_por es requerido")
    try:
        return await resolve_note_service(
            note_id, body.resuelto_por, body.estado, body.descripcion_resolucion, request
        )
    except Exception as e:
        await request.app.state.log.log_error("note", f"Ошибка при решении заметки: {str(e)}", {"id": note_id})
        raise


@router.put("/{note_id}/unresolve", summary="Вернуть заметку в Pendiente")
async def unresolve_note(note_id: str, request: Request, _=Depends(staff_user)):
    try:
        return await unresolve_note_service(note_id, request)
    except Exception as e:
        await request.app.state.log.log_error("note", f"Ошибка при возврате заметки: {str(e)}", {"id": note_id})
        raise


# ────────────── DELETE ──────────────
@router.delete(
    "/{note_id}",
    summary="Удалить заметку (мягко, статус Eliminado)",
    responses={404: {"description": "Заметка не найдена"}},
)
async def delete_note(note_id: str, request: Request, _=Depends(staff_user)):
    try:
        return await delete_note_service(note_id, request)
    except Exception as e:
        await request.app.state.log.log_error("note", f"Ошибка при удалении заметки: {str(e)}", {"id": note_id})
        raise
