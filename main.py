# main.py
"""
API da agenda multi-clínica (FastAPI + Firestore).
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

import config
from database import initialize_firebase_app
from errors import AppointmentValidationError, BackendError, PreconditionError
from routers import agenda, agendamentos, clinicas, tarefas

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# --- Configuração da Aplicação ---
app = FastAPI(
    title="API de Agenda Multi-Clínica",
    description="Agenda, recorrências e tarefas de clínicas, usando Firebase e Firestore.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Evento de Startup ---
@app.on_event("startup")
def startup_event():
    """Inicializa a conexão com o Firebase ao iniciar a aplicação."""
    initialize_firebase_app()


# --- Mapeamento de erros ---
@app.exception_handler(PreconditionError)
def tratar_precondicao(request: Request, exc: PreconditionError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(AppointmentValidationError)
def tratar_validacao_agendamento(request: Request, exc: AppointmentValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "missing_fields": exc.missing_fields}
    )


@app.exception_handler(ValidationError)
def tratar_validacao(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": jsonable_encoder(exc.errors(include_context=False))})


@app.exception_handler(BackendError)
def tratar_backend(request: Request, exc: BackendError):
    logger.error(f"Erro de backend em {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


# --- Routers ---
app.include_router(clinicas.router)
app.include_router(agendamentos.router)
app.include_router(agenda.router)
app.include_router(tarefas.router)


@app.get("/", tags=["Root"])
def root():
    return {"message": "API da agenda multi-clínica no ar"}
