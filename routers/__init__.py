# routers/__init__.py
"""
Routers modulares para a API FastAPI
"""

from . import agenda
from . import agendamentos
from . import clinicas
from . import tarefas

__all__ = [
    'agenda',
    'agendamentos',
    'clinicas',
    'tarefas'
]
