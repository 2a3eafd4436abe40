"""
Base class for loading the skill matrix and lookup tables with field mapping.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from ..occupation_clusters import CrosswalkEntry, SkillMatrix
from .utils import normalize_occupation_code


@dataclass
class FieldMapping:
    """Configuration for mapping source columns to standardized fields."""

    # ----- Skill matrix -----
    occupation_code: str = "noc_code"
    occupation_title: Optional[str] = "noc_title"

    # Explicit skill columns; if empty, every numeric column except the
    # code/title columns is treated as a skill
    skill_columns: List[str] = field(default_factory=list)

    # Zero-padded code width
    code_width: int = 5

    # ----- Cluster label table -----
    cluster_number: str = "cluster"
    cluster_label: str = "label"

    # ----- Crosswalk -----
    source_code: str = "source_code"
    # NOC 2016 codes are 4 digits
    source_code_width: int = 4
    source_title: Optional[str] = "source_title"
    target_code: str = "target_code"
    target_title: Optional[str] = "target_title"

    # ----- Baseline membership (already flattened to one row per title) -----
    baseline_cluster: str = "cluster"
    baseline_title: str = "title"


@dataclass
class LookupTables:
    """Read-only lookup tables passed explicitly to the comparison step."""

    cluster_labels: Dict[str, str] = field(default_factory=dict)
    crosswalk: List[CrosswalkEntry] = field(default_factory=list)
    baseline_membership: Dict[str, List[str]] = field(default_factory=dict)

    def summary(self) -> Dict[str, int]:
        return {
            "cluster_labels": len(self.cluster_labels),
            "crosswalk_entries": len(self.crosswalk),
            "baseline_clusters": len(self.baseline_membership),
            "baseline_titles": sum(len(t) for t in self.baseline_membership.values()),
        }


class BaseTableLoader(ABC):
    """
    Abstract base class for loading tabular inputs from various sources.

    Subclasses must implement:
        - _load_table(): Load one named table as a DataFrame

    Table names: "skills", "cluster_labels", "crosswalk", "baseline".
    """

    def __init__(self, field_mapping: Optional[FieldMapping] = None):
        """
        Initialize the loader with optional field mapping.

        Args:
            field_mapping: FieldMapping naming the source columns.
                          Defaults are used if None.
        """
        self.field_mapping = field_mapping or FieldMapping()

    @abstractmethod
    def _load_table(self, name: str) -> pd.DataFrame:
        """Load one raw table. Must be implemented by subclasses."""
        pass

    def has_table(self, name: str) -> bool:
        """Whether the source provides a table. Override if optional."""
        return True

    def _require_columns(self, df: pd.DataFrame, columns: List[str], table: str) -> None:
        missing = [c for c in columns if c and c not in df.columns]
        if missing:
            raise ValueError(f"Table '{table}' is missing column(s): {missing}")

    def _code(self, value) -> str:
        return normalize_occupation_code(value, self.field_mapping.code_width)

    def load_skill_matrix(self) -> SkillMatrix:
        """Load the occupation x skill matrix."""
        mapping = self.field_mapping
        df = self._load_table("skills")
        self._require_columns(df, [mapping.occupation_code], "skills")

        if mapping.skill_columns:
            self._require_columns(df, mapping.skill_columns, "skills")
            skill_columns = list(mapping.skill_columns)
        else:
            excluded = {mapping.occupation_code, mapping.occupation_title}
            skill_columns = [
                c for c in df.columns
                if c not in excluded and pd.api.types.is_numeric_dtype(df[c])
            ]

        if not skill_columns:
            raise ValueError("No skill columns found in skills table")

        values = df[skill_columns].apply(pd.to_numeric, errors="coerce")
        values.index = [self._code(c) for c in df[mapping.occupation_code]]

        return SkillMatrix.from_dataframe(values)

    def load_occupation_titles(self) -> Dict[str, str]:
        """Occupation code -> title from the skills table, if it has titles."""
        mapping = self.field_mapping
        df = self._load_table("skills")
        if not mapping.occupation_title or mapping.occupation_title not in df.columns:
            return {}
        return {
            self._code(code): str(title)
            for code, title in zip(df[mapping.occupation_code], df[mapping.occupation_title])
        }

    def load_cluster_labels(self) -> Dict[str, str]:
        """Cluster number (string) -> description."""
        mapping = self.field_mapping
        df = self._load_table("cluster_labels")
        self._require_columns(df, [mapping.cluster_number, mapping.cluster_label], "cluster_labels")

        return {
            normalize_occupation_code(number, width=0): str(label)
            for number, label in zip(df[mapping.cluster_number], df[mapping.cluster_label])
        }

    def load_crosswalk(self) -> List[CrosswalkEntry]:
        """Old-scheme to new-scheme code links."""
        mapping = self.field_mapping
        df = self._load_table("crosswalk")
        self._require_columns(df, [mapping.source_code, mapping.target_code], "crosswalk")

        entries = []
        for _, row in df.iterrows():
            if pd.isna(row[mapping.source_code]) or pd.isna(row[mapping.target_code]):
                continue
            entries.append(CrosswalkEntry(
                source_code=normalize_occupation_code(
                    row[mapping.source_code], mapping.source_code_width
                ),
                target_code=self._code(row[mapping.target_code]),
                source_title=_optional_str(row, mapping.source_title),
                target_title=_optional_str(row, mapping.target_title),
            ))
        return entries

    def load_baseline_membership(self) -> Dict[str, List[str]]:
        """Baseline cluster -> occupation titles."""
        mapping = self.field_mapping
        df = self._load_table("baseline")
        self._require_columns(df, [mapping.baseline_cluster, mapping.baseline_title], "baseline")

        membership: Dict[str, List[str]] = {}
        for cluster, title in zip(df[mapping.baseline_cluster], df[mapping.baseline_title]):
            if pd.isna(title):
                continue
            membership.setdefault(str(cluster), []).append(str(title))
        return membership

    def load_lookup_tables(self) -> LookupTables:
        """Load every lookup table the source provides."""
        return LookupTables(
            cluster_labels=self.load_cluster_labels() if self.has_table("cluster_labels") else {},
            crosswalk=self.load_crosswalk() if self.has_table("crosswalk") else [],
            baseline_membership=(
                self.load_baseline_membership() if self.has_table("baseline") else {}
            ),
        )


def _optional_str(row: pd.Series, column: Optional[str]) -> Optional[str]:
    if not column or column not in row.index or pd.isna(row[column]):
        return None
    return str(row[column])
