# crud/__init__.py
"""
Módulo CRUD organizado por domínios da clínica.
"""

# Utilitários
from crud.utils import (
    add_timestamps,
    remover_nulos,
    serializar,
    documento_para_dict
)

# Coleções genéricas por clínica
from crud.colecoes import (
    CLINIC_COLLECTIONS,
    colecao_da_clinica,
    listar_documentos,
    buscar_documento,
    criar_documento,
    atualizar_documento,
    deletar_documento,
    assinar_consulta,
    assinar_colecao
)

# Agendamentos
from crud.agendamentos import (
    validar_campos_obrigatorios,
    listar_agendamentos,
    listar_agendamentos_por_data,
    listar_agendamentos_por_paciente,
    buscar_agendamento_por_id,
    criar_agendamento,
    atualizar_agendamento,
    atualizar_status_agendamento,
    deletar_agendamento,
    assinar_agendamentos,
    cancelar_ocorrencia,
    destacar_ocorrencia
)

# Tarefas
from crud.tarefas import (
    listar_tarefas,
    buscar_tarefa_por_id,
    criar_tarefa,
    atualizar_tarefa,
    alternar_conclusao_tarefa,
    deletar_tarefa,
    assinar_tarefas
)

# Clínicas e usuários
from crud.clinicas import (
    buscar_usuario,
    criar_usuario,
    vincular_usuario_clinica,
    buscar_clinica_por_id,
    criar_clinica,
    atualizar_configuracoes_clinica,
    semear_dados_demo
)
