from datetime import date, time

import pytest

from shared.exceptions import INVALID_WINDOW, JanelaInvalidaError
from shared.janelas import (
    JanelaHorario,
    datas_sobrepoem,
    duracao_minutos,
    formatar_horario,
    intervalos_sobrepoem,
    parse_horario,
    sobrepoe,
)

DIA = date(2025, 4, 1)


def test_parse_horario_minutos_do_dia():
    assert parse_horario("14:30") == 870
    assert parse_horario("00:00") == 0
    assert parse_horario("9:05") == 545
    assert parse_horario("08:15:00") == 495
    assert parse_horario(time(23, 59)) == 1439


@pytest.mark.parametrize("valor", ["24:00", "12:60", "abc", "", "12h30", None])
def test_parse_horario_rejeita_invalidos(valor):
    with pytest.raises(JanelaInvalidaError) as ei:
        parse_horario(valor)
    assert ei.value.codigo == INVALID_WINDOW


def test_formatar_horario_inverso_do_parse():
    assert formatar_horario(870) == "14:30"
    assert formatar_horario(parse_horario("07:05")) == "07:05"
    with pytest.raises(JanelaInvalidaError):
        formatar_horario(24 * 60)


def test_duracao_da_janela():
    janela = JanelaHorario.de_horarios(DIA, "14:30", "15:30")
    assert duracao_minutos(janela) == 60
    assert janela.duracao == 60
    assert janela.hora_inicio == time(14, 30)
    assert str(janela) == "2025-04-01 14:30-15:30"


def test_janela_com_inicio_igual_ou_apos_fim_e_invalida():
    with pytest.raises(JanelaInvalidaError):
        JanelaHorario.de_horarios(DIA, "10:00", "10:00")
    with pytest.raises(JanelaInvalidaError):
        JanelaHorario.de_horarios(DIA, "11:00", "10:00")


def test_sobreposicao_simetrica():
    a = JanelaHorario.de_horarios(DIA, "10:00", "11:00")
    b = JanelaHorario.de_horarios(DIA, "10:30", "11:30")
    assert sobrepoe(a, b) is True
    assert sobrepoe(b, a) is True


def test_janelas_que_se_tocam_nao_sobrepoem():
    a = JanelaHorario.de_horarios(DIA, "09:00", "10:00")
    b = JanelaHorario.de_horarios(DIA, "10:00", "11:00")
    assert not a.sobrepoe(b)
    assert not b.sobrepoe(a)


def test_janela_contida_sobrepoe():
    externa = JanelaHorario.de_horarios(DIA, "08:00", "12:00")
    interna = JanelaHorario.de_horarios(DIA, "09:00", "09:30")
    assert externa.sobrepoe(interna)
    assert externa.contem(interna)
    assert not interna.contem(externa)


def test_datas_diferentes_nao_sobrepoem():
    a = JanelaHorario.de_horarios(date(2025, 4, 1), "10:00", "11:00")
    b = JanelaHorario.de_horarios(date(2025, 4, 2), "10:00", "11:00")
    assert not a.sobrepoe(b)


def test_janela_recorrente_ignora_data():
    regra = JanelaHorario.de_horarios(None, "08:00", "12:00")
    assert regra.sobrepoe(JanelaHorario.de_horarios(DIA, "11:00", "13:00"))
    assert str(regra) == "08:00-12:00"


def test_datas_sobrepoem_inclusivo():
    assert datas_sobrepoem(date(2025, 4, 1), date(2025, 4, 3), date(2025, 4, 3), date(2025, 4, 5))
    assert not datas_sobrepoem(date(2025, 4, 1), date(2025, 4, 2), date(2025, 4, 3), date(2025, 4, 5))


OUTRO_DIA = date(2025, 4, 2)


@pytest.mark.parametrize(
    ("a", "b", "esperado"),
    [
        ((DIA, "09:00", "10:00"), (DIA, "10:00", "11:00"), False),  # fim encosta no início
        ((DIA, "10:00", "11:00"), (DIA, "09:00", "10:00"), False),
        ((DIA, "09:00", "10:00"), (DIA, "09:59", "11:00"), True),
        ((DIA, "08:00", "12:00"), (DIA, "09:00", "10:00"), True),  # contida
        ((DIA, "09:00", "10:00"), (DIA, "09:00", "10:00"), True),  # idêntica
        ((DIA, "09:00", "10:00"), (DIA, "09:00", "09:01"), True),  # mesmo início
        ((DIA, "09:00", "10:00"), (DIA, "09:30", "10:00"), True),  # mesmo fim
        ((DIA, "09:00", "10:00"), (DIA, "11:00", "12:00"), False),  # disjunta
        ((DIA, "09:00", "10:00"), (OUTRO_DIA, "09:00", "10:00"), False),  # outra data
        ((DIA, "09:00", "10:00"), (None, "09:30", "10:30"), True),  # regra recorrente
        ((None, "09:00", "10:00"), (None, "10:00", "11:00"), False),
    ],
)
def test_sobreposicao_grade(a, b, esperado):
    janela_a = JanelaHorario.de_horarios(*a)
    janela_b = JanelaHorario.de_horarios(*b)
    assert janela_a.sobrepoe(janela_b) is esperado
    assert janela_b.sobrepoe(janela_a) is esperado
    assert sobrepoe(janela_a, janela_b) == sobrepoe(janela_b, janela_a)


INTERVALOS = [(ini, fim) for ini in range(6) for fim in range(ini + 1, 7)]


@pytest.mark.parametrize(("ini_a", "fim_a"), INTERVALOS)
@pytest.mark.parametrize(("ini_b", "fim_b"), INTERVALOS)
def test_intervalos_meio_abertos_exaustivo(ini_a, fim_a, ini_b, fim_b):
    minutos_a = set(range(ini_a, fim_a))
    minutos_b = set(range(ini_b, fim_b))
    assert intervalos_sobrepoem(ini_a, fim_a, ini_b, fim_b) is bool(minutos_a & minutos_b)
    assert intervalos_sobrepoem(ini_a, fim_a, ini_b, fim_b) is intervalos_sobrepoem(ini_b, fim_b, ini_a, fim_a)
