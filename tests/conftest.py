import pytest

from postaltracker.config import Settings


@pytest.fixture
def delivered_payload():
    return {
        "codObjeto": "AA123456789BR",
        "tipoPostal": {"categoria": "SEDEX", "descricao": "SEDEX A VISTA"},
        "dtPrevista": "21/02/2026",
        "eventos": [
            {
                "codigo": "BDE",
                "tipo": "BDE",
                "descricao": "Delivered",
                "dtHrCriado": {
                    "date": "2026-02-19 11:22:32.000000",
                    "timezone_type": 3,
                    "timezone": "America/Sao_Paulo",
                },
                "unidade": {"endereco": {"cidade": "Sao Paulo", "uf": "SP", "pais": "Brasil"}},
            },
            {
                "codigo": "RO",
                "tipo": "RO",
                "descricao": "In transit",
                "detalhe": "from Curitiba / PR to Sao Paulo / SP",
                "dtHrCriado": "2026-02-18T08:00:00",
                "unidade": {"endereco": {"cidade": "Curitiba", "uf": "PR"}},
            },
            {
                "codigo": "PO",
                "tipo": "PO",
                "descricao": "Posted",
                "descricaoFrontEnd": "Object posted",
                "dtHrCriado": {"date": "2026-02-17 09:15:00.123456"},
            },
        ],
    }


@pytest.fixture
def settings(tmp_path):
    return Settings(
        rapidapi_key="test-key",
        base_url="https://carrier.test",
        history_file=tmp_path / "history.json",
    )
