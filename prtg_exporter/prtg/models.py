"""
Pydantic models for PRTG ``/api/table.json`` documents.

A table document wraps its rows in either a ``sensors`` or a ``channels``
array depending on the ``content`` that was requested. Property names are
matched case-insensitively.
"""
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from prtg_exporter.prtg.normalizer import coerce_number, parse_number


def _lower_keys(data: Any) -> Any:
    if isinstance(data, dict):
        return {str(k).lower(): v for k, v in data.items()}
    return data


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    objid: int

    @model_validator(mode="before")
    @classmethod
    def lowercase_keys(cls, data: Any) -> Any:
        return _lower_keys(data)


def _as_text(value: Any) -> Optional[str]:
    """Textual columns occasionally come back as bare numbers."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


class Sensor(_Row):
    """One row of a ``content=sensors`` table."""

    device: Optional[str] = None
    probe: Optional[str] = None
    group: Optional[str] = None
    sensor: Optional[str] = None
    lastvalue: Optional[str] = None
    lastvalue_alt: Optional[str] = Field(default=None, alias="lastvalue_")

    @field_validator(
        "device", "probe", "group", "sensor", "lastvalue", "lastvalue_alt",
        mode="before",
    )
    @classmethod
    def text_columns(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    @property
    def value(self) -> Optional[float]:
        """Numeric last value: primary encoding, then the alternate one."""
        primary = parse_number(self.lastvalue)
        if primary is not None:
            return primary
        return parse_number(self.lastvalue_alt)


class Channel(_Row):
    """One row of a ``content=channels`` table for a single sensor."""

    name: Optional[str] = None
    unit: Optional[str] = None
    lastvalue: Optional[str] = None
    lastvalue_raw: Any = None
    lastvalue_alt: Optional[str] = Field(default=None, alias="lastvalue_")

    @field_validator("name", "unit", "lastvalue", "lastvalue_alt", mode="before")
    @classmethod
    def text_columns(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    @property
    def value(self) -> Optional[float]:
        """
        Numeric last value, first match wins:

        1. ``lastvalue_raw`` when it is a number or numeric string
        2. ``lastvalue`` through the normalizer
        3. ``lastvalue_`` through the normalizer
        """
        for candidate in (
            coerce_number(self.lastvalue_raw),
            parse_number(self.lastvalue),
            parse_number(self.lastvalue_alt),
        ):
            if candidate is not None:
                return candidate
        return None


RowT = TypeVar("RowT", bound=_Row)


class TableResponse(BaseModel, Generic[RowT]):
    """Table document with its two possible row containers."""

    model_config = ConfigDict(extra="ignore")

    channels: Optional[List[RowT]] = None
    sensors: Optional[List[RowT]] = None

    @model_validator(mode="before")
    @classmethod
    def lowercase_keys(cls, data: Any) -> Any:
        return _lower_keys(data)

    @property
    def items(self) -> List[RowT]:
        """Rows of whichever container is populated, channels first."""
        if self.channels:
            return self.channels
        if self.sensors:
            return self.sensors
        return []


SensorTable = TableResponse[Sensor]
ChannelTable = TableResponse[Channel]


def sensor_labels(sensor: Sensor) -> Dict[str, str]:
    return {
        "sensor_id": str(sensor.objid),
        "device": sensor.device or "",
        "sensor": sensor.sensor or "",
        "probe": sensor.probe or "",
        "group": sensor.group or "",
    }


def channel_labels(sensor: Sensor, channel: Channel) -> Dict[str, str]:
    labels = sensor_labels(sensor)
    labels["channel"] = channel.name or ""
    labels["unit"] = channel.unit or ""
    return labels
