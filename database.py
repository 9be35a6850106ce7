# database.py
"""
Inicialização do Firebase Admin e acesso ao cliente Firestore.
"""

import logging

import firebase_admin
from firebase_admin import credentials, firestore

import config

logger = logging.getLogger(__name__)

_db = None


def initialize_firebase_app():
    """Inicializa o app do Firebase uma única vez (chamado no startup da API)."""
    if firebase_admin._apps:
        logger.info("Firebase já inicializado")
        return firebase_admin.get_app()

    options = {"projectId": config.FIREBASE_PROJECT_ID} if config.FIREBASE_PROJECT_ID else None
    try:
        if config.FIREBASE_CREDENTIALS:
            cred = credentials.Certificate(config.FIREBASE_CREDENTIALS)
            app = firebase_admin.initialize_app(cred, options)
        else:
            app = firebase_admin.initialize_app(options=options)
        logger.info("✅ Firebase inicializado com sucesso")
        return app
    except Exception as e:
        logger.error(f"❌ Erro ao inicializar Firebase: {e}")
        raise


def get_db():
    """Dependência do FastAPI que devolve o cliente Firestore."""
    global _db
    if _db is None:
        initialize_firebase_app()
        _db = firestore.client()
    return _db
