"""
Event bus name resolution.

A subscriber's ``eventBus`` may be a literal name/ARN, a reference to a bus
declared in the service's own resources (``Ref``, ``Fn::Ref``, ``Fn::GetAtt``)
or a cross-stack import (``Fn::ImportValue``). Imports cannot be resolved from
local definitions, so their names are supplied through configuration.
"""

from types import MappingProxyType
from typing import Any, Mapping, Optional

from offline_eventbridge.handlers.utils.observability import logger

SUBSYSTEM = 'bus-registry'

_LOCAL_REFERENCE_KEYS = ('Ref', 'Fn::Ref')
_GET_ATT = 'Fn::GetAtt'
_IMPORT_VALUE = 'Fn::ImportValue'


class BusRegistry:
    """Read-only lookup tables for locally declared and imported buses."""

    def __init__(
        self,
        local_buses: Optional[Mapping[str, str]] = None,
        imported_buses: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._local_buses = MappingProxyType(dict(local_buses or {}))
        self._imported_buses = MappingProxyType(dict(imported_buses or {}))
        logger.debug(
            'Bus registry initialized',
            extra={
                'subsystem': SUBSYSTEM,
                'local_buses': dict(self._local_buses),
                'imported_buses': dict(self._imported_buses),
            }
        )

    @property
    def local_buses(self) -> Mapping[str, str]:
        return self._local_buses

    @property
    def imported_buses(self) -> Mapping[str, str]:
        return self._imported_buses

    def resolve(self, bus_reference: Any) -> Optional[str]:
        """Resolve a bus reference to a bus name, or ``None`` if unresolvable."""
        if isinstance(bus_reference, str):
            return bus_reference

        if not isinstance(bus_reference, Mapping):
            return None

        for key in _LOCAL_REFERENCE_KEYS:
            if key in bus_reference:
                return self._lookup(self._local_buses, bus_reference[key])

        if _GET_ATT in bus_reference:
            attribute = bus_reference[_GET_ATT]
            if isinstance(attribute, str):
                logical_id = attribute.split('.', 1)[0]
            elif isinstance(attribute, (list, tuple)) and attribute:
                logical_id = attribute[0]
            else:
                return None
            return self._lookup(self._local_buses, logical_id)

        if _IMPORT_VALUE in bus_reference:
            return self._lookup(self._imported_buses, bus_reference[_IMPORT_VALUE])

        return None

    def resolve_bus_match(self, bus_reference: Any, target_bus_name: str) -> bool:
        """
        Check whether a subscriber's bus reference designates ``target_bus_name``.

        Matching is lenient substring containment in either direction, so an ARN
        matches its bus name and a stage-suffixed name matches its base name.
        Unresolvable references never match.
        """
        bus_name = self.resolve(bus_reference)
        if not bus_name or not target_bus_name:
            return False
        return target_bus_name in bus_name or bus_name in target_bus_name

    @staticmethod
    def _lookup(table: Mapping[str, str], key: Any) -> Optional[str]:
        if not isinstance(key, str):
            return None
        return table.get(key)
