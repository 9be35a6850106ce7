# tests/fakes.py
"""
Firestore em memória para os testes.

Cobre apenas o que o backend usa: coleções e subcoleções, where/order_by,
stream, get/set/update/delete, SERVER_TIMESTAMP e on_snapshot. O listener é
chamado de forma síncrona no registro e a cada escrita na coleção, sempre com
o resultado completo da consulta.
"""

import copy
import itertools
from datetime import datetime, timezone

from firebase_admin import firestore

import schemas

CLINIC_ID = "clinica-teste"
USER_ID = "usuario-dono"
USER_SEM_CLINICA = "usuario-novo"

_OPERADORES = {
    '==': lambda a, b: a == b,
    '!=': lambda a, b: a != b,
    '<': lambda a, b: a < b,
    '<=': lambda a, b: a <= b,
    '>': lambda a, b: a > b,
    '>=': lambda a, b: a >= b,
    'in': lambda a, b: a in b,
}


def _resolver_sentinelas(data):
    agora = datetime.now(timezone.utc)
    return {k: (agora if v is firestore.SERVER_TIMESTAMP else copy.deepcopy(v)) for k, v in data.items()}


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeWatch:
    def __init__(self, db, listener):
        self._db = db
        self._listener = listener
        self.unsubscribe_calls = 0

    def unsubscribe(self):
        self.unsubscribe_calls += 1
        if self._listener in self._db.listeners:
            self._db.listeners.remove(self._listener)


class FakeQuery:
    def __init__(self, db, path, filtros=(), ordem=None):
        self._db = db
        self._path = path
        self._filtros = tuple(filtros)
        self._ordem = ordem

    def where(self, field, op, value):
        return FakeQuery(self._db, self._path, self._filtros + ((field, op, value),), self._ordem)

    def order_by(self, field, direction=firestore.Query.ASCENDING):
        return FakeQuery(self._db, self._path, self._filtros, (field, direction))

    def _executar(self):
        docs = []
        for doc_path, data in self._db.documents.items():
            if doc_path[:-1] != self._path:
                continue
            if all(campo in data and _OPERADORES[op](data[campo], valor) for campo, op, valor in self._filtros):
                docs.append(FakeSnapshot(FakeDocumentReference(self._db, doc_path), data))
        if self._ordem:
            campo, direcao = self._ordem
            docs = [d for d in docs if d._data.get(campo) is not None]
            docs.sort(key=lambda d: d._data[campo], reverse=direcao == firestore.Query.DESCENDING)
        return docs

    def stream(self):
        self._db.operations.append(('stream', '/'.join(self._path)))
        return iter(self._executar())

    def on_snapshot(self, callback):
        self._db.operations.append(('on_snapshot', '/'.join(self._path)))
        listener = (self, callback)
        self._db.listeners.append(listener)
        callback(self._executar(), [], datetime.now(timezone.utc))
        watch = FakeWatch(self._db, listener)
        self._db.watches.append(watch)
        return watch


class FakeCollectionReference(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, path)

    def document(self, doc_id=None):
        if doc_id is None:
            doc_id = f"doc{next(self._db.ids)}"
        return FakeDocumentReference(self._db, self._path + (doc_id,))


class FakeDocumentReference:
    def __init__(self, db, path):
        self._db = db
        self._path = path
        self.id = path[-1]

    @property
    def path(self):
        return '/'.join(self._path)

    def collection(self, name):
        return FakeCollectionReference(self._db, self._path + (name,))

    def get(self):
        self._db.operations.append(('get', self.path))
        return FakeSnapshot(self, self._db.documents.get(self._path))

    def set(self, data):
        self._db.operations.append(('set', self.path))
        self._db.documents[self._path] = _resolver_sentinelas(data)
        self._db.notificar(self._path[:-1])

    def update(self, data):
        self._db.operations.append(('update', self.path))
        if self._path not in self._db.documents:
            raise KeyError(f"Documento inexistente: {self.path}")
        self._db.documents[self._path].update(_resolver_sentinelas(data))
        self._db.notificar(self._path[:-1])

    def delete(self):
        self._db.operations.append(('delete', self.path))
        self._db.documents.pop(self._path, None)
        self._db.notificar(self._path[:-1])


class FakeFirestore:
    def __init__(self):
        self.documents = {}
        self.listeners = []
        self.watches = []
        self.operations = []
        self.ids = itertools.count(1)

    def collection(self, name):
        return FakeCollectionReference(self, (name,))

    def notificar(self, collection_path):
        for query, callback in list(self.listeners):
            if query._path == collection_path:
                callback(query._executar(), [], datetime.now(timezone.utc))

    @property
    def active_listeners(self):
        return len(self.listeners)

    def seed(self, path, data):
        """Grava um documento direto, sem registrar operação nem notificar listeners."""
        self.documents[tuple(path.split('/'))] = _resolver_sentinelas(data)


def make_appointment(appointment_id="a1", when=None, recurrence=None, **kwargs):
    """Fábrica de agendamentos para testes de domínio."""
    dados = {
        "id": appointment_id,
        "patient_id": "paciente-1",
        "patient_name": "Maria Silva",
        "date": when or datetime(2025, 1, 6, 9, 0),
        "procedure": "Consulta",
        "recurrence": recurrence,
    }
    dados.update(kwargs)
    return schemas.Appointment(**dados)
