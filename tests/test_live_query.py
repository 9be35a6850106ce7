from datetime import date

import pytest

import schemas
from errors import SubscriptionError
from live_query import LiveQuery, QueryState
from tenant import Ready, UNSCOPED


class FonteFake:
    """Fonte de assinatura que registra a ordem de subscribe/unsubscribe."""

    def __init__(self, falhar=None):
        self.assinaturas = []
        self.eventos = []
        self.falhar = falhar

    def __call__(self, scope_id, filtro, on_data, on_error):
        if self.falhar:
            raise self.falhar
        indice = len(self.assinaturas)
        assinatura = {"scope": scope_id, "filtro": filtro, "on_data": on_data, "on_error": on_error,
                      "ativa": True, "teardowns": 0}
        self.assinaturas.append(assinatura)
        self.eventos.append(("subscribe", indice))

        def unsubscribe():
            assinatura["teardowns"] += 1
            assinatura["ativa"] = False
            self.eventos.append(("unsubscribe", indice))
        return unsubscribe

    @property
    def ativas(self):
        return [a for a in self.assinaturas if a["ativa"]]


def test_sem_clinica_nao_assina_e_nao_fica_carregando():
    fonte = FonteFake()
    consulta = LiveQuery(fonte, scope=UNSCOPED)

    assert fonte.assinaturas == []
    assert consulta.state == QueryState()
    assert consulta.loading is False


def test_loading_ate_o_primeiro_frame():
    fonte = FonteFake()
    consulta = LiveQuery(fonte, scope=Ready("c1"))

    assert consulta.loading is True
    assert fonte.assinaturas[0]["scope"] == "c1"

    fonte.assinaturas[0]["on_data"](["a", "b"])
    assert consulta.loading is False
    assert consulta.items == ["a", "b"]


def test_no_maximo_uma_assinatura_ativa_e_teardown_antes_da_nova():
    fonte = FonteFake()
    consulta = LiveQuery(fonte, scope=Ready("c1"))
    filtros = [
        schemas.SubscriptionFilter.by_date(date(2025, 1, 6)),
        schemas.SubscriptionFilter.by_patient("p1"),
        schemas.SubscriptionFilter.all(),
        schemas.SubscriptionFilter.by_date(date(2025, 1, 7)),
    ]
    for filtro in filtros:
        consulta.set_filter(filtro)
        assert len(fonte.ativas) == 1

    consulta.set_scope(Ready("c2"))
    assert len(fonte.ativas) == 1
    assert fonte.ativas[0]["scope"] == "c2"

    # Cada subscribe N+1 vem logo depois do unsubscribe N
    for indice in range(1, len(fonte.assinaturas)):
        posicao = fonte.eventos.index(("subscribe", indice))
        assert fonte.eventos[posicao - 1] == ("unsubscribe", indice - 1)


def test_frame_atrasado_da_assinatura_antiga_e_descartado():
    fonte = FonteFake()
    consulta = LiveQuery(fonte, scope=Ready("c1"))
    antiga = fonte.assinaturas[0]

    consulta.set_filter(schemas.SubscriptionFilter.by_patient("p1"))
    nova = fonte.assinaturas[1]
    nova["on_data"](["do paciente"])

    antiga["on_data"](["atrasado"])
    antiga["on_error"](RuntimeError("atrasado"))

    assert consulta.items == ["do paciente"]
    assert consulta.error is None


def test_erro_da_assinatura_vai_para_o_estado_sem_retry():
    fonte = FonteFake()
    consulta = LiveQuery(fonte, scope=Ready("c1"))
    fonte.assinaturas[0]["on_data"](["a"])

    causa = RuntimeError("permissão negada")
    fonte.assinaturas[0]["on_error"](causa)

    assert isinstance(consulta.error, SubscriptionError)
    assert consulta.error.__cause__ is causa
    assert consulta.loading is False
    assert consulta.items == []
    assert len(fonte.assinaturas) == 1

    consulta.refresh()
    assert len(fonte.assinaturas) == 2
    assert fonte.assinaturas[0]["teardowns"] == 1
    assert consulta.loading is True
    assert consulta.error is None


def test_erro_sincrono_ao_assinar_e_capturado():
    consulta = LiveQuery(FonteFake(falhar=RuntimeError("offline")), scope=Ready("c1"))

    assert isinstance(consulta.error, SubscriptionError)
    assert consulta.loading is False
    assert consulta.active is False


def test_filtro_igual_nao_reassina():
    fonte = FonteFake()
    consulta = LiveQuery(fonte, scope=Ready("c1"), filter_shape=schemas.SubscriptionFilter.by_patient("p1"))

    consulta.set_filter(schemas.SubscriptionFilter.by_patient("p1"))
    consulta.set_scope(Ready("c1"))

    assert len(fonte.assinaturas) == 1


def test_perder_a_clinica_derruba_a_assinatura():
    fonte = FonteFake()
    consulta = LiveQuery(fonte, scope=Ready("c1"))
    fonte.assinaturas[0]["on_data"](["a"])

    consulta.set_scope(UNSCOPED)

    assert fonte.ativas == []
    assert consulta.state == QueryState()


def test_close_chama_teardown_uma_unica_vez():
    fonte = FonteFake()
    consulta = LiveQuery(fonte, scope=Ready("c1"))

    consulta.close()
    consulta.close()

    assert fonte.assinaturas[0]["teardowns"] == 1
    with pytest.raises(RuntimeError):
        consulta.set_filter(schemas.SubscriptionFilter.by_patient("p1"))
    with pytest.raises(RuntimeError):
        consulta.refresh()


def test_context_manager_encerra_a_assinatura():
    fonte = FonteFake()
    with LiveQuery(fonte, scope=Ready("c1")) as consulta:
        assert consulta.active
    assert fonte.assinaturas[0]["teardowns"] == 1


def test_listeners_recebem_os_estados():
    fonte = FonteFake()
    consulta = LiveQuery(fonte, scope=Ready("c1"))
    recebidos = []
    remover = consulta.add_listener(recebidos.append)

    fonte.assinaturas[0]["on_data"](["a"])
    remover()
    fonte.assinaturas[0]["on_data"](["b"])

    assert recebidos == [QueryState(items=("a",))]
