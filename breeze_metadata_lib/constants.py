"""
Constants used throughout the Breeze metadata library.

The tables below are the single place where wire-level names are decided.
Extend them rather than special-casing types in the builders.
"""

import datetime
import decimal
import uuid

# Namespace prefixes stripped from a host type's display name
CORE_NAMESPACE_PREFIXES = ("System.", "Edm.", "builtins.")

# Non-nullable host type full name -> canonical Breeze data type
DATA_TYPE_NAMES = {
    "System.Byte[]": "Binary",
    "Edm.Binary": "Binary",
    "Edm.Stream": "Binary",
    "Edm.Time": "TimeSpan",
    "Edm.Duration": "TimeSpan",
    "Edm.Date": "DateTime",
    "Edm.TimeOfDay": "TimeSpan",
}

# Python classes -> (display name, namespace) of the equivalent host type
PYTHON_HOST_TYPES = {
    bool: ("Boolean", "System"),
    int: ("Int32", "System"),
    float: ("Double", "System"),
    str: ("String", "System"),
    bytes: ("Byte[]", "System"),
    bytearray: ("Byte[]", "System"),
    decimal.Decimal: ("Decimal", "System"),
    datetime.datetime: ("DateTime", "System"),
    datetime.date: ("DateTime", "System"),
    datetime.timedelta: ("TimeSpan", "System"),
    uuid.UUID: ("Guid", "System"),
}

# Canonical data type -> default value for non-nullable properties
# that the client cannot default safely on its own.
SYNTHESIZED_DEFAULTS = {
    "TimeSpan": "PT0S",
}

# Canonical data type -> Breeze type validator name
TYPE_VALIDATORS = {
    "String": "string",
    "Boolean": "bool",
    "Byte": "byte",
    "Int16": "int16",
    "Int32": "int32",
    "Int64": "int64",
    "Decimal": "number",
    "Double": "number",
    "Single": "number",
    "DateTime": "date",
    "DateTimeOffset": "date",
    "TimeSpan": "duration",
    "Guid": "guid",
}

QUALIFIED_NAME_SEPARATOR = ":#"
INVERSE_ASSOCIATION_PREFIX = "Inv_"
CONCURRENCY_MODE_FIXED = "Fixed"

# CSDL annotation namespace carrying StoreGeneratedPattern
ANNOTATION_NAMESPACE = "http://schemas.microsoft.com/ado/2009/02/edm/annotation"
