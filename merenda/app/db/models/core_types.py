import enum


class Role(str, enum.Enum):
    admin = "admin"
    user = "user"
    school = "escola"


class NotificationType(str, enum.Enum):
    devolucao = "devolucao"
    alerta = "alerta"
    info = "info"


class HistoryAction(str, enum.Enum):
    criacao = "CRIACAO"
    edicao = "EDICAO"
    exclusao = "EXCLUSAO"
    reabastecimento = "REABASTECIMENTO"
    envio = "ENVIO"


class StockStatus(str, enum.Enum):
    ok = "ok"
    baixo = "baixo"
    zerado = "zerado"
