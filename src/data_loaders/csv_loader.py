"""
CSV loader for reading the skill matrix and lookup tables from local files.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd

from .base_loader import BaseTableLoader, FieldMapping


class CSVTableLoader(BaseTableLoader):
    """
    Load input tables from CSV files.
    
    Each table name ("skills", "cluster_labels", "crosswalk", "baseline")
    maps to one file. Only "skills" is required.
    """
    
    def __init__(
        self,
        paths: Dict[str, Union[str, Path, None]],
        field_mapping: Optional[FieldMapping] = None,
        encoding: str = "utf-8",
    ):
        """
        Initialize the CSV loader.
        
        Args:
            paths: Table name -> CSV path (None for tables not provided)
            field_mapping: Optional FieldMapping naming the columns
            encoding: File encoding (default: "utf-8")
        """
        super().__init__(field_mapping)
        self.paths = {name: Path(p) for name, p in paths.items() if p}
        self.encoding = encoding
        self._cache: Dict[str, pd.DataFrame] = {}
        
        if "skills" not in self.paths:
            raise ValueError("A 'skills' table path is required")
        
        for name, path in self.paths.items():
            if not path.exists():
                raise FileNotFoundError(f"Table '{name}' does not exist: {path}")
    
    def has_table(self, name: str) -> bool:
        return name in self.paths
    
    def _load_table(self, name: str) -> pd.DataFrame:
        if name not in self.paths:
            raise FileNotFoundError(f"No path configured for table '{name}'")
        
        if name not in self._cache:
            self._cache[name] = pd.read_csv(self.paths[name], encoding=self.encoding)
        return self._cache[name].copy()
    
    def get_file_stats(self) -> Dict[str, Any]:
        """Get statistics about the configured files."""
        return {
            name: {
                "path": str(path),
                "size_kb": round(path.stat().st_size / 1024, 1),
            }
            for name, path in self.paths.items()
        }
