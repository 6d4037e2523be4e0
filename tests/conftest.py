from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from congreso_graph.config import IngestSettings
from congreso_graph.models import Initiative
from congreso_graph.store import InitiativeStore

# ── Raw export fixtures ───────────────────────────────────────────────────────

EXPORT_A = """<?xml version="1.0" encoding="UTF-8"?>
<results>
  <result>
    <LEGISLATURA>15</LEGISLATURA>
    <SUPERTIPO>Iniciativas legislativas</SUPERTIPO>
    <TIPO>Proyecto de ley</TIPO>
    <NUMEXPEDIENTE>121/000001</NUMEXPEDIENTE>
    <OBJETO>Ley de Protección del Medio Ambiente</OBJETO>
    <AUTOR>Gobierno</AUTOR>
    <FECHAPRESENTACION>05/12/2023</FECHAPRESENTACION>
    <FECHACALIFICACION>12/12/2023</FECHACALIFICACION>
    <INICIATIVASRELACIONADAS>122/000002</INICIATIVASRELACIONADAS>
    <TIPOTRAMITACION>Normal</TIPOTRAMITACION>
    <COMISIONCOMPETENTE>Comisión de Transición Ecológica</COMISIONCOMPETENTE>
    <SITUACIONACTUAL>Comisión de Transición Ecológica Enmiendas</SITUACIONACTUAL>
    <TRAMITACIONSEGUIDA>Comisión de Igualdad
desde 12/12/2023 hasta 15/12/2023</TRAMITACIONSEGUIDA>
  </result>
  <result>
    <LEGISLATURA>15</LEGISLATURA>
    <TIPO>Proposición de ley de Grupos Parlamentarios del Congreso</TIPO>
    <NUMEXPEDIENTE>122/000002</NUMEXPEDIENTE>
    <OBJETO>Proposición provisional que será reemplazada</OBJETO>
    <AUTOR>Grupo Parlamentario Socialista</AUTOR>
  </result>
  <result>
    <TIPO>Proposición de ley</TIPO>
    <OBJETO>Entrada sin número de expediente</OBJETO>
  </result>
</results>
"""

EXPORT_B = """<?xml version="1.0" encoding="UTF-8"?>
<results>
  <result>
    <LEGISLATURA>15</LEGISLATURA>
    <TIPO>Proposición de ley de Grupos Parlamentarios del Congreso</TIPO>
    <NUMEXPEDIENTE>122/000002</NUMEXPEDIENTE>
    <OBJETO>Ley de Protección del Medio Ambiente - Enmiendas</OBJETO>
    <AUTOR>Grupo Parlamentario Socialista</AUTOR>
    <RESULTADOTRAMITACION>Aprobada</RESULTADOTRAMITACION>
  </result>
  <result>
    <LEGISLATURA>15</LEGISLATURA>
    <TIPO>Real Decreto-ley</TIPO>
    <NUMEXPEDIENTE>130/000004</NUMEXPEDIENTE>
    <OBJETO>Real Decreto-ley 4/2024, de 26 de junio, por el que se prorrogan determinadas medidas</OBJETO>
    <AUTOR>Gobierno</AUTOR>
    <SITUACIONACTUAL>Cerrado</SITUACIONACTUAL>
  </result>
</results>
"""


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Two exports: a duplicate key across files and one entry without a key."""
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    (downloads / "a_iniciativas.xml").write_text(EXPORT_A, encoding="utf-8")
    (downloads / "b_iniciativas.xml").write_text(EXPORT_B, encoding="utf-8")
    return downloads


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'congreso.db'}"


@pytest.fixture
def settings(source_dir: Path, db_url: str) -> IngestSettings:
    return IngestSettings(source_dir=source_dir, db_url=db_url, workers=1)


@pytest.fixture
def store(db_url: str) -> InitiativeStore:
    s = InitiativeStore(db_url)
    s.check_connection()
    return s


# ── Initiative fixtures ───────────────────────────────────────────────────────


@pytest.fixture
def make_initiative() -> Callable[..., Initiative]:
    def _make(expediente: str = "121/000001", **fields) -> Initiative:
        return Initiative(expediente=expediente, **fields)

    return _make


@pytest.fixture
def environment_pair(make_initiative) -> dict[str, Initiative]:
    """The classic near-duplicate pair, the first one declaring the second as related."""
    a = make_initiative(
        "121/000001",
        subject="Ley de Protección del Medio Ambiente",
        related_keys=["122/000002"],
    )
    b = make_initiative("122/000002", subject="Ley de Protección del Medio Ambiente - Enmiendas")
    return {a.expediente: a, b.expediente: b}
