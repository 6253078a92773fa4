"""Pydantic models describing DiagRAMS telemetry readings.

The bridge itself forwards payloads verbatim. These models only describe the
input schema of the MCP ``send_telemetry`` tool.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TelemetryReading(BaseModel):
    """A single sensor value as accepted by the DiagRAMS data endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    sensor_id: str = Field(alias="sensorId", description="Identifier of the sensor in the project.")
    value_name: str = Field(alias="valueName", description="Name of the measured quantity.")
    date: str = Field(description="ISO 8601 timestamp of the reading.")
    value: int | float
    precision: int | float | None = None


def serialize_readings(readings: list[TelemetryReading]) -> list[dict[str, Any]]:
    """Return readings in the wire shape, omitting unset optional fields."""
    return [reading.model_dump(mode="json", by_alias=True, exclude_none=True) for reading in readings]


__all__ = ["TelemetryReading", "serialize_readings"]
