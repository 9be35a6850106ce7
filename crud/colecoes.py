# crud/colecoes.py
"""
CRUD genérico para coleções isoladas por clínica.

Todas as coleções de domínio ficam em /clinics/{clinic_id}/{colecao}/{doc_id}.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from firebase_admin import firestore
from crud.utils import add_timestamps, remover_nulos, documento_para_dict

logger = logging.getLogger(__name__)

# Coleções de domínio e o campo usado para filtrar por paciente (None = sem escopo de paciente).
CLINIC_COLLECTIONS: Dict[str, Optional[str]] = {
    'appointments': 'patient_id',
    'tasks': 'patient_id',
    'records': 'patient_id',
    'lab_results': 'patient_id',
    'prescriptions': 'patient_id',
    'telemedicine_sessions': 'patient_id',
    'payments': 'patient_id',
}

Filtro = Tuple[str, str, object]


def colecao_da_clinica(db: firestore.client, clinic_id: str, nome: str):
    """Referência da subcoleção `nome` de uma clínica."""
    return db.collection('clinics').document(clinic_id).collection(nome)


def montar_consulta(db: firestore.client, clinic_id: str, nome: str, filtros: Iterable[Filtro] = (),
                    ordem: Optional[str] = None, direcao: str = firestore.Query.ASCENDING):
    query = colecao_da_clinica(db, clinic_id, nome)
    for campo, operador, valor in filtros:
        query = query.where(campo, operador, valor)
    if ordem:
        query = query.order_by(ordem, direction=direcao)
    return query


def listar_documentos(db: firestore.client, clinic_id: str, nome: str, filtros: Iterable[Filtro] = (),
                      ordem: Optional[str] = None, direcao: str = firestore.Query.ASCENDING,
                      converter: Callable = documento_para_dict) -> List:
    """Leitura pontual de uma coleção da clínica."""
    query = montar_consulta(db, clinic_id, nome, filtros, ordem, direcao)
    itens = [converter(doc) for doc in query.stream()]
    logger.info(f"Retornando {len(itens)} documentos de {nome} da clínica {clinic_id}")
    return itens


def buscar_documento(db: firestore.client, clinic_id: str, nome: str, doc_id: str,
                     converter: Callable = documento_para_dict):
    doc = colecao_da_clinica(db, clinic_id, nome).document(doc_id).get()
    if not doc.exists:
        return None
    return converter(doc)


def criar_documento(db: firestore.client, clinic_id: str, nome: str, dados: Dict) -> str:
    doc_ref = colecao_da_clinica(db, clinic_id, nome).document()
    doc_ref.set(add_timestamps(dados, is_update=False))
    logger.info(f"Documento {doc_ref.id} criado em {nome} da clínica {clinic_id}")
    return doc_ref.id


def atualizar_documento(db: firestore.client, clinic_id: str, nome: str, doc_id: str, dados: Dict) -> bool:
    """Atualização parcial. Retorna False se o documento não existir."""
    doc_ref = colecao_da_clinica(db, clinic_id, nome).document(doc_id)
    if not doc_ref.get().exists:
        logger.warning(f"Documento {doc_id} não encontrado em {nome} da clínica {clinic_id}")
        return False

    update_dict = add_timestamps(remover_nulos(dados), is_update=True)
    doc_ref.update(update_dict)
    logger.info(f"Documento {doc_id} de {nome} atualizado com sucesso")
    return True


def deletar_documento(db: firestore.client, clinic_id: str, nome: str, doc_id: str) -> bool:
    doc_ref = colecao_da_clinica(db, clinic_id, nome).document(doc_id)
    if not doc_ref.get().exists:
        logger.warning(f"Documento {doc_id} não encontrado em {nome} da clínica {clinic_id}")
        return False
    doc_ref.delete()
    logger.info(f"Documento {doc_id} removido de {nome}")
    return True


def assinar_consulta(query, converter: Callable, on_data: Callable[[List], None],
                     on_error: Optional[Callable[[Exception], None]] = None,
                     descricao: str = "consulta") -> Callable[[], None]:
    """
    Registra um listener em tempo real e devolve a função de cancelamento.

    O Firestore entrega cada snapshot completo numa thread própria. Erros ao
    converter os documentos vão para `on_error`. O cancelamento é idempotente:
    o watch é encerrado uma única vez.
    """
    def _on_snapshot(docs, changes, read_time):
        try:
            itens = [converter(doc) for doc in docs]
        except Exception as e:
            logger.error(f"Erro ao processar snapshot de {descricao}: {e}")
            if on_error:
                on_error(e)
            return
        on_data(itens)

    watch = query.on_snapshot(_on_snapshot)
    lock = threading.Lock()
    encerrado = False

    def unsubscribe():
        nonlocal encerrado
        with lock:
            if encerrado:
                return
            encerrado = True
        watch.unsubscribe()
        logger.debug(f"Assinatura de {descricao} encerrada")

    return unsubscribe


def assinar_colecao(db: firestore.client, clinic_id: str, nome: str, on_data: Callable[[List], None],
                    on_error: Optional[Callable[[Exception], None]] = None, filtros: Iterable[Filtro] = (),
                    ordem: Optional[str] = None, direcao: str = firestore.Query.ASCENDING,
                    converter: Callable = documento_para_dict) -> Callable[[], None]:
    query = montar_consulta(db, clinic_id, nome, filtros, ordem, direcao)
    return assinar_consulta(query, converter, on_data, on_error, descricao=f"{nome} ({clinic_id})")
