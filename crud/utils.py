# crud/utils.py
"""
Utilitários e funções auxiliares reutilizáveis
"""

import logging
from typing import Dict
from firebase_admin import firestore
from pydantic import BaseModel

logger = logging.getLogger(__name__)


def add_timestamps(data: Dict, is_update: bool = False) -> Dict:
    """
    Adiciona timestamps aos dados.

    Args:
        data: Dicionário de dados
        is_update: Se True, adiciona updated_at. Se False, adiciona created_at

    Returns:
        Dicionário com timestamps adicionados
    """
    data_with_timestamps = data.copy()

    if is_update:
        data_with_timestamps['updated_at'] = firestore.SERVER_TIMESTAMP
    else:
        data_with_timestamps['created_at'] = firestore.SERVER_TIMESTAMP
        data_with_timestamps['updated_at'] = None

    return data_with_timestamps


def remover_nulos(data: Dict) -> Dict:
    """Remove chaves com valor None (campos não informados numa atualização parcial)."""
    return {campo: valor for campo, valor in data.items() if valor is not None}


def serializar(modelo, apenas_informados: bool = False) -> Dict:
    """
    Converte um schema (ou dict) em dados aceitos pelo Firestore.

    Datas viram strings ISO-8601 e enums viram seus valores, para que
    consultas por intervalo de data funcionem por comparação de string.
    """
    if isinstance(modelo, BaseModel):
        return modelo.model_dump(mode='json', exclude_unset=apenas_informados)
    return dict(modelo)


def documento_para_dict(doc) -> Dict:
    """Converte um DocumentSnapshot em dict incluindo o ID."""
    data = doc.to_dict() or {}
    data['id'] = doc.id
    return data
