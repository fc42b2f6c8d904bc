"""
Distance Matrix Travel Options

This module defines `TravelOptions`, the validated set of optional request
parameters applied to every Distance Matrix call of a run.

Every field is either unset (omitted from the request so the service applies
its own default) or one value of a fixed enumeration. An unrecognized value is
a fatal configuration error, raised before any request is sent.

Functions:
----------
- parse_travel_options(...): Builds `TravelOptions` from raw command-line strings.

Usage:
------
    options = parse_travel_options(mode="transit", transit_mode="bus|tram")
    params = options.to_request_params()
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from transit_heatmap.core.config import (
    Avoid,
    TrafficModel,
    TransitMode,
    TransitRoutingPreference,
    TravelMode,
    Units,
)
from transit_heatmap.core.exceptions import ConfigurationError


class TravelOptions(BaseModel):
    """
    Optional Distance Matrix request parameters.

    Attributes:
        mode (Optional[TravelMode]): driving, walking, bicycling or transit.
        avoid (Optional[Avoid]): tolls, highways or ferries.
        units (Optional[Units]): metric or imperial.
        transit_mode (List[TransitMode]): Preferred transit vehicles; accepts "bus|rail".
        transit_routing_preference (Optional[TransitRoutingPreference]): less_walking or fewer_transfers.
        traffic_model (Optional[TrafficModel]): best_guess, pessimistic or optimistic.
        language (Optional[str]): Language of textual results.
        departure_time (Optional[datetime]): Desired departure.
        arrival_time (Optional[datetime]): Desired arrival (transit only).
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: Optional[TravelMode] = None
    avoid: Optional[Avoid] = None
    units: Optional[Units] = None
    transit_mode: List[TransitMode] = []
    transit_routing_preference: Optional[TransitRoutingPreference] = None
    traffic_model: Optional[TrafficModel] = None
    language: Optional[str] = None
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None

    @field_validator(
        "mode", "avoid", "units", "transit_routing_preference",
        "traffic_model", "language", "departure_time", "arrival_time",
        mode="before"
    )
    @classmethod
    def _empty_means_unset(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("transit_mode", mode="before")
    @classmethod
    def _split_transit_modes(cls, value: Any) -> Any:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return value.split("|")
        return value

    def to_request_params(self) -> Dict[str, str]:
        """
        Returns the request parameters for every set field.

        Unset fields are left out entirely; times are sent as unix seconds
        and transit modes are joined with "|".

        Returns:
            Dict[str, str]: Query parameters for the Distance Matrix API.
        """
        params: Dict[str, str] = {}
        for name in ("mode", "avoid", "units", "transit_routing_preference", "traffic_model", "language"):
            value = getattr(self, name)
            if value is not None:
                params[name] = value

        if self.transit_mode:
            params["transit_mode"] = "|".join(self.transit_mode)
        if self.departure_time is not None:
            params["departure_time"] = str(int(self.departure_time.timestamp()))
        if self.arrival_time is not None:
            params["arrival_time"] = str(int(self.arrival_time.timestamp()))

        return params


def parse_travel_options(**raw: Any) -> TravelOptions:
    """
    Validates raw option values into `TravelOptions`.

    Args:
        **raw: Field values, typically strings from the command line ("" means unset).

    Returns:
        TravelOptions: The validated options.

    Raises:
        ConfigurationError: If a value is not one of the supported choices.
    """
    try:
        return TravelOptions(**raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}={err.get('input')!r}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid travel options: {problems}") from e
