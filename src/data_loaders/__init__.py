from .base_loader import BaseTableLoader, FieldMapping, LookupTables
from .csv_loader import CSVTableLoader
from .utils import normalize_occupation_code, teer_level

__all__ = [
    "BaseTableLoader",
    "FieldMapping",
    "LookupTables",
    "CSVTableLoader",
    "normalize_occupation_code",
    "teer_level",
]
