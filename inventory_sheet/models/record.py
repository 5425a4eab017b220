"""Schema of the technical-sheet record returned by the inventory API.

The API speaks Spanish field names (``codigo``, ``subcategoria`` ...); the
models expose English attribute names and accept either spelling on input.
Numbers arriving where text is expected are coerced to strings, so the
derived-value helpers always see the raw text the API sent.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class RecordValidationError(ValueError):
    """A required part of the inventory record is absent or malformed."""


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
        frozen=True,
    )


class Photo(_ApiModel):
    id: Optional[str] = None
    filename: str = Field(default="", alias="nombre")
    item_id: Optional[str] = Field(default=None, alias="id_producto")

    @field_validator("filename", mode="before")
    @classmethod
    def _none_filename(cls, v: Any) -> Any:
        return "" if v is None else v


class Quotation(_ApiModel):
    id: Optional[str] = None
    number: Optional[str] = Field(default=None, alias="numero_cotizacion")
    appraisal: Optional[str] = Field(default=None, alias="avaluo")
    legacy_number: Optional[str] = Field(default=None, alias="numero")


class Category(_ApiModel):
    id: Optional[str] = None
    name: Optional[str] = Field(default=None, alias="nombre")
    client_id: Optional[str] = Field(default=None, alias="id_cliente")


class Subcategory(_ApiModel):
    id: Optional[str] = None
    category_id: Optional[str] = Field(default=None, alias="id_categoria")
    name: str = Field(alias="nombre")
    code: Optional[str] = Field(default=None, alias="codigo_sub_categoria")
    category: Optional[Category] = Field(default=None, alias="categoria")


class Responsible(_ApiModel):
    id: Optional[str] = None
    name: Optional[str] = Field(default=None, alias="nombre")


class Group(_ApiModel):
    id: Optional[str] = None
    name: Optional[str] = Field(default=None, alias="nombre")
    line_id: Optional[str] = Field(default=None, alias="id_linea")
    line_code: Optional[str] = Field(default=None, alias="codigo_linea")
    useful_life_days: Optional[str] = Field(default=None, alias="vida_util_niif_dias")


class Dependency(_ApiModel):
    """Physical location unit (``dependencia``)."""

    id: Optional[str] = None
    name: Optional[str] = Field(default=None, alias="nombre")
    video: Optional[str] = None
    floor_id: Optional[str] = Field(default=None, alias="id_piso")
    branch_id: Optional[str] = Field(default=None, alias="id_sucursal")
    functional_unit_id: Optional[str] = Field(default=None, alias="id_unidad_funcional")


class FunctionalUnit(_ApiModel):
    id: Optional[str] = None
    name: Optional[str] = Field(default=None, alias="nombre")


class Subgroup(_ApiModel):
    id: Optional[str] = None
    name: Optional[str] = Field(default=None, alias="nombre")
    group_id: Optional[str] = Field(default=None, alias="id_grupo")


class InventoryRecord(_ApiModel):
    """One inventory item with its classification and media references."""

    # identifying codes
    id: Optional[str] = None
    code: Optional[str] = Field(default=None, alias="codigo")
    legacy_code: Optional[str] = Field(default=None, alias="codigo_antiguo")
    current_plate: Optional[str] = Field(default=None, alias="placa_actual")

    # location / state
    location: Optional[str] = Field(default=None, alias="ubicacion")
    condition: Optional[str] = Field(default=None, alias="estado")  # "1".."5"
    ownership: Optional[str] = Field(default=None, alias="titularidad")  # "1" = owned
    observation: Optional[str] = Field(default=None, alias="observacion")

    # description
    general_name: Optional[str] = Field(default=None, alias="nombre_general")
    brand: Optional[str] = Field(default=None, alias="marca")
    model: Optional[str] = Field(default=None, alias="modelo")
    serial: Optional[str] = None
    color: Optional[str] = None
    supplier: Optional[str] = Field(default=None, alias="proveedor")

    # financial
    invoice_number: Optional[str] = Field(default=None, alias="numero_factura")
    cost: Optional[str] = Field(default=None, alias="costo")
    acquisition_date: Optional[str] = Field(default=None, alias="fecha_adquisicion")
    acquisition_value: Optional[str] = Field(default=None, alias="valor_adquisicion")
    appraisal: Optional[str] = Field(default=None, alias="avaluo")
    useful_life: Optional[str] = Field(default=None, alias="vida_util")

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # relations
    subcategory: Subcategory = Field(alias="subcategoria")
    group: Optional[Group] = Field(default=None, alias="grupo")
    subgroup: Optional[Subgroup] = Field(default=None, alias="subgrupo")
    dependency: Optional[Dependency] = Field(default=None, alias="dependencia")
    functional_unit: Optional[FunctionalUnit] = Field(default=None, alias="unidad_funcional")
    responsible: Optional[Responsible] = Field(default=None, alias="responsable")
    photos: tuple[Photo, ...] = Field(default=(), alias="fotos")
    quotations: tuple[Quotation, ...] = Field(default=(), alias="cotizaciones")

    @field_validator("photos", "quotations", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return () if v is None else v

    @classmethod
    def from_api(cls, payload: Any) -> "InventoryRecord":
        """Validate a raw API payload, failing fast on missing relations."""
        if isinstance(payload, cls):
            return payload
        if payload is None:
            raise RecordValidationError("Inventory record is absent")
        if not isinstance(payload, Mapping):
            raise RecordValidationError(
                f"Inventory record must be an object, got {type(payload).__name__}"
            )
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise RecordValidationError(_describe(e)) from e


class EntityConfig(_ApiModel):
    """Organization shown in the sheet header (``{name, taxId}``)."""

    name: str
    tax_id: str = Field(alias="taxId")
    short_name: Optional[str] = Field(default=None, alias="shortName")


def _describe(error: ValidationError) -> str:
    """Human-readable summary of the first problems in a ValidationError."""
    parts = []
    for err in error.errors()[:3]:
        path = ".".join(str(p) for p in err.get("loc", ()))
        if err.get("type") == "missing":
            parts.append(f"missing required relation '{path}'")
        else:
            parts.append(f"invalid '{path}': {err.get('msg')}")
    return "Inventory record is invalid: " + "; ".join(parts)
