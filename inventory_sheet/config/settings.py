from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from inventory_sheet.models import EntityConfig

_PACKAGE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # Inventory API (record source)
    INVENTORY_API_URL: str = Field(
        default="https://inventario-v3.mrconsulting.com.co/public/fichatecnica/generate"
    )
    INVENTORY_API_TIMEOUT: float = Field(default=30.0)
    INVENTORY_XSRF_TOKEN: str = Field(default="")
    INVENTORY_SESSION_COOKIE: str = Field(default="")  # laravel_session

    # Photos
    PHOTO_BASE_URL: str = Field(
        default="https://inventario-v3.mrconsulting.com.co/public/storage/fotos/"
    )
    PHOTO_FETCH_TIMEOUT: float = Field(default=10.0)  # seconds per photo

    # Entity shown in the sheet header and entity table
    ENTITY_NAME: str = Field(default="E.S.E. Hospital Universitario Julio Méndez Barreneche")
    ENTITY_TAX_ID: str = Field(default="891.780.185-2")
    ENTITY_SHORT_NAME: str = Field(default="")

    # Rendering
    LOGO_PATH: str = Field(default=str(_PACKAGE_DIR / "services" / "assets" / "logo.png"))
    FONT_DIR: str = Field(default="")
    SHOW_VALUATION: bool = Field(default=False)
    CURRENCY_SYMBOL: str = Field(default="$")
    THOUSANDS_SEPARATOR: str = Field(default=".")

    # Output / logging
    OUTPUT_DIR: str = Field(default=".")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: str = Field(default="logs")

    # REST wrapper
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=3000)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def entity(self) -> EntityConfig:
        return EntityConfig(
            name=self.ENTITY_NAME,
            tax_id=self.ENTITY_TAX_ID,
            short_name=self.ENTITY_SHORT_NAME or None,
        )

    @property
    def session_cookies(self) -> dict:
        cookies = {}
        if self.INVENTORY_XSRF_TOKEN:
            cookies["XSRF-TOKEN"] = self.INVENTORY_XSRF_TOKEN
        if self.INVENTORY_SESSION_COOKIE:
            cookies["laravel_session"] = self.INVENTORY_SESSION_COOKIE
        return cookies

    @property
    def font_dir(self) -> Path | None:
        return Path(self.FONT_DIR) if self.FONT_DIR else None


settings = Settings()
