# MIT License
#
# Copyright (c) 2025 BLE Peripheral Contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
Property maps published for each GATT object.

BlueZ discovers the attribute tree by calling GetManagedObjects on the
application root and reads single objects with Properties.GetAll. Both
answers are built here from a fixed schema per node kind, as
``{interface: {property: PropertyValue}}``. The bus layer turns each
PropertyValue into the matching D-Bus type.
"""

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Tuple

from .BLEConstants import (
    CHARACTERISTIC_PROPERTY_KEY,
    DESCRIPTORS_PROPERTY_KEY,
    FLAGS_PROPERTY_KEY,
    GATT_CHARACTERISTIC_INTERFACE,
    GATT_DESCRIPTOR_INTERFACE,
    GATT_SERVICE_INTERFACE,
    PRIMARY_PROPERTY_KEY,
    SERVICE_PROPERTY_KEY,
    UUID_PROPERTY_KEY,
)
from .BLEErrors import BLEPeripheralError, UnknownInterfaceError


class NodeKind(Enum):
    SERVICE = "service"
    CHARACTERISTIC = "characteristic"
    DESCRIPTOR = "descriptor"


class PropertyKind(Enum):
    """Wire type of a property. The value is the D-Bus signature."""

    STRING = "s"
    BOOL = "b"
    PATH = "o"
    BYTES = "ay"
    STRING_LIST = "as"
    PATH_LIST = "ao"


@dataclass(frozen=True)
class PropertyValue:
    """A property value tagged with its wire type."""

    kind: PropertyKind
    value: Any

    @classmethod
    def of_string(cls, value) -> "PropertyValue":
        return cls(PropertyKind.STRING, str(value))

    @classmethod
    def of_bool(cls, value) -> "PropertyValue":
        return cls(PropertyKind.BOOL, bool(value))

    @classmethod
    def of_path(cls, value) -> "PropertyValue":
        return cls(PropertyKind.PATH, str(value))

    @classmethod
    def of_bytes(cls, value) -> "PropertyValue":
        return cls(PropertyKind.BYTES, bytes(value))

    @classmethod
    def of_string_list(cls, values: Iterable) -> "PropertyValue":
        return cls(PropertyKind.STRING_LIST, tuple(str(v) for v in values))

    @classmethod
    def of_path_list(cls, values: Iterable) -> "PropertyValue":
        return cls(PropertyKind.PATH_LIST, tuple(str(v) for v in values))

    @property
    def signature(self) -> str:
        return self.kind.value


_CONSTRUCTORS = {
    PropertyKind.STRING: PropertyValue.of_string,
    PropertyKind.BOOL: PropertyValue.of_bool,
    PropertyKind.PATH: PropertyValue.of_path,
    PropertyKind.BYTES: PropertyValue.of_bytes,
    PropertyKind.STRING_LIST: PropertyValue.of_string_list,
    PropertyKind.PATH_LIST: PropertyValue.of_path_list,
}


def _parent_path(node) -> str:
    parent = node.parent
    if parent is None:
        raise BLEPeripheralError(f"{node.path} is not attached to a parent")
    return parent.path


PropertySpec = Tuple[str, PropertyKind, Callable[[Any], Any]]

# Published properties per node kind, in publication order. Descriptor
# values are not published; peers fetch them with ReadValue.
PROPERTY_SCHEMA: Dict[NodeKind, Tuple[str, Tuple[PropertySpec, ...]]] = {
    NodeKind.SERVICE: (GATT_SERVICE_INTERFACE, (
        (UUID_PROPERTY_KEY, PropertyKind.STRING, lambda s: s.uuid),
        (PRIMARY_PROPERTY_KEY, PropertyKind.BOOL, lambda s: s.primary),
    )),
    NodeKind.CHARACTERISTIC: (GATT_CHARACTERISTIC_INTERFACE, (
        (SERVICE_PROPERTY_KEY, PropertyKind.PATH, _parent_path),
        (UUID_PROPERTY_KEY, PropertyKind.STRING, lambda c: c.uuid),
        (FLAGS_PROPERTY_KEY, PropertyKind.STRING_LIST, lambda c: c.flag_strings),
        (DESCRIPTORS_PROPERTY_KEY, PropertyKind.PATH_LIST, lambda c: c.descriptor_paths),
    )),
    NodeKind.DESCRIPTOR: (GATT_DESCRIPTOR_INTERFACE, (
        (CHARACTERISTIC_PROPERTY_KEY, PropertyKind.PATH, _parent_path),
        (UUID_PROPERTY_KEY, PropertyKind.STRING, lambda d: d.uuid),
        (FLAGS_PROPERTY_KEY, PropertyKind.STRING_LIST, lambda d: d.flag_strings),
    )),
}


def interface_of(node) -> str:
    return PROPERTY_SCHEMA[node.KIND][0]


def properties_of(node) -> Dict[str, Dict[str, PropertyValue]]:
    """Render ``node`` as ``{interface: {property: PropertyValue}}``."""
    interface, specs = PROPERTY_SCHEMA[node.KIND]
    values = OrderedDict()
    for name, kind, extract in specs:
        values[name] = _CONSTRUCTORS[kind](extract(node))
    return {interface: values}


def get_all(node, interface: str) -> Dict[str, PropertyValue]:
    """Properties.GetAll for ``node``."""
    properties = properties_of(node)
    if interface not in properties:
        raise UnknownInterfaceError(f"Unknown interface [interface_name={interface}]")
    return properties[interface]


def get_property(node, interface: str, name: str) -> PropertyValue:
    """Properties.Get for ``node``."""
    values = get_all(node, interface)
    if name not in values:
        raise UnknownInterfaceError(f"Unknown property {interface}.{name}")
    return values[name]


def full_introspection(tree) -> Dict[str, Dict[str, Dict[str, PropertyValue]]]:
    """
    Property maps of every attached node, keyed by object path.

    This is the GetManagedObjects answer; iteration order follows the tree
    (each service, then its characteristics, each followed by its
    descriptors).
    """
    response = OrderedDict()
    for node in tree.iter_nodes():
        response[node.path] = properties_of(node)
    return response


def unwrap(properties):
    """Strip PropertyValue tags from a (nested) property map."""
    if isinstance(properties, PropertyValue):
        value = properties.value
        return list(value) if isinstance(value, tuple) else value
    return {key: unwrap(value) for key, value in properties.items()}
