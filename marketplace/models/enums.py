from enum import Enum


class MaterialType(str, Enum):
    SOIL = "soil"
    GRAVEL = "gravel"
    STRUCTURAL_FILL = "structural_fill"


class Unit(str, Enum):
    CUBIC_YARDS = "Cubic Yards"
    TONS = "Tons"


class ListingType(str, Enum):
    IMPORT = "Import"  # demand
    EXPORT = "Export"  # supply


class ListingStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class QuantitySort(str, Enum):
    ASC = "asc"
    DESC = "desc"


MATERIAL_UNITS = {
    MaterialType.SOIL: Unit.CUBIC_YARDS,
    MaterialType.STRUCTURAL_FILL: Unit.CUBIC_YARDS,
    MaterialType.GRAVEL: Unit.TONS,
}


def unit_for(material_type) -> Unit:
    return MATERIAL_UNITS[MaterialType(material_type)]


def display_name(material_type) -> str:
    """'structural_fill' -> 'Structural Fill'"""
    value = MaterialType(material_type).value
    return " ".join(word.capitalize() for word in value.split("_"))
