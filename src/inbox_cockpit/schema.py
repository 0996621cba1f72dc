"""Pydantic schema for ~/.inbox-cockpit/cockpit.yaml

Default values here MUST match the canonical constants in conventions.py.
conventions.py defines the fixed names and limits every view agrees on;
this schema defines what a user may tune.
"""

from pydantic import BaseModel, Field, field_validator

SIGNATURE_MIN_WIDTH = 120
SIGNATURE_MAX_WIDTH = 600
SIGNATURE_DEFAULT_WIDTH = 260


class StorageConfig(BaseModel):
    # Source of truth: conventions.COCKPIT_HOME / conventions.STORAGE_FILENAME
    path: str = "~/.inbox-cockpit/storage.json"


class GeneratorConfig(BaseModel):
    """Where generation requests go.

    mode "http" posts to base_url; "mock" answers locally (simulator).
    """

    mode: str = "http"  # http | mock
    base_url: str = "http://localhost:3001"
    timeout_seconds: float = 60.0
    quality: str = "fast"  # fast | quality


class CacheConfig(BaseModel):
    # Source of truth: conventions.RETENTION_MS
    retention_days: int = 5
    # Source of truth: conventions.HISTORY_MAX_ENTRIES
    history_max_entries: int = 300
    # Source of truth: conventions.WORKSPACE_FLUSH_DELAY_MS
    workspace_flush_delay_ms: int = 250

    @property
    def retention_ms(self) -> int:
        return self.retention_days * 24 * 60 * 60 * 1000


class SignatureConfig(BaseModel):
    """Signature appended to inserted drafts.

    For "image", image_data_url (a stored data: URL) wins over image_url.
    """

    mode: str = "off"  # off | text | html | image
    text: str = ""
    html: str = ""
    image_url: str = ""
    image_data_url: str = ""
    image_max_width: int = SIGNATURE_DEFAULT_WIDTH

    @field_validator("image_max_width", mode="before")
    @classmethod
    def _clamp_width(cls, value: object) -> int:
        try:
            width = int(value)  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return SIGNATURE_DEFAULT_WIDTH
        return max(SIGNATURE_MIN_WIDTH, min(SIGNATURE_MAX_WIDTH, width))


class TemplateConfig(BaseModel):
    """A reply snippet. {{nome}} and {{assunto}} are filled on pick."""

    id: str
    name: str
    body: str = ""


def default_templates() -> list[TemplateConfig]:
    return [
        TemplateConfig(
            id="tpl-followup",
            name="Pedido de informação (follow-up)",
            body=(
                "Olá {{nome}},\n\nObrigado pelo seu email.\n"
                "Para avançarmos, pode confirmar por favor:\n- (ponto 1)\n- (ponto 2)\n\n"
                "Fico a aguardar.\n\nCumprimentos,"
            ),
        ),
        TemplateConfig(
            id="tpl-orcamento",
            name="Pedido de orçamento (curto)",
            body=(
                "Olá {{nome}},\n\nObrigado pelo contacto.\n"
                "Para preparar o orçamento, preciso de confirmar:\n"
                "- referência / modelo\n- acabamento\n- quantidades\n- prazo pretendido\n\n"
                "Assim que tiver estes dados envio a proposta.\n\nCumprimentos,"
            ),
        ),
        TemplateConfig(
            id="tpl-atraso",
            name="Atualização de prazo / atraso",
            body=(
                "Olá {{nome}},\n\nSó para atualizar: estamos a acompanhar o processo "
                "e assim que tivermos confirmação de data/prazo voltamos a contactar.\n\n"
                "Obrigado pela compreensão.\n\nCumprimentos,"
            ),
        ),
    ]


class ComposeConfig(BaseModel):
    reply_language: str = "pt-PT"
    tone: str = "neutro"
    body_scope: str = "main"  # main | full
    my_email: str = ""
    auto_summary: bool = True
    # Source of truth: conventions.AUTO_SUMMARY_THROTTLE_MS / AUTO_SUMMARY_DELAY_MS
    auto_summary_throttle_ms: int = 30_000
    auto_summary_delay_ms: int = 350
    signature: SignatureConfig = Field(default_factory=SignatureConfig)
    templates: list[TemplateConfig] = Field(default_factory=default_templates)


class CockpitConfig(BaseModel):
    simulator: bool = False
    storage: StorageConfig = Field(default_factory=StorageConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    compose: ComposeConfig = Field(default_factory=ComposeConfig)
