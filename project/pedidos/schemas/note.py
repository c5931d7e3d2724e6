# pedidos/schemas/note.py

from pydantic import BaseModel
from typing import Optional


class NoteCreate(BaseModel):
    descripcion: Optional[str] = None
    estado: Optional[str] = None
    operador: Optional[str] = None


class NoteUpdate(BaseModel):
    descripcion: Optional[str] = None


class NoteResolve(BaseModel):
    """Решение заметки: кто решил и как."""
    estado: Optional[str] = "Resuelto"
    resuelto_por: Optional[str] = None
    descripcion_resolucion: Optional[str] = None
