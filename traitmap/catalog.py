"""Trait catalog: which traits exist and how they are labelled."""

import re
from dataclasses import dataclass
from typing import Dict, List

import pandas as pd

from traitmap.sources import RESERVED_FIELDS

GENE = "gene"
TF_ACTIVITY = "tf_activity"

TRAIT_CATEGORIES = [
    {"key": GENE, "label": "Gene"},
    {"key": TF_ACTIVITY, "label": "TF Activity"},
]

# "Sox2 activity(direct)", "Sox2_activity", "Sox2 Activity (extended)"
TF_LABEL_PATTERN = re.compile(
    r"^(?P<name>.+?)[\s_]*activity\s*(?:\((?P<qualifier>[^)]*)\))?\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class TraitDescriptor:
    """A selectable trait.

    Attributes:
        key: Column name in the fused record set
        label: Human-readable name
        category: 'gene' or 'tf_activity'
        placeholder: True for the default catalog injected when no trait exists
    """
    key: str
    label: str
    category: str
    placeholder: bool = False

    def to_dict(self) -> Dict:
        return {
            "key": self.key,
            "label": self.label,
            "category": self.category,
            "placeholder": self.placeholder,
        }


# Used only when a dataset has no trait columns at all
PLACEHOLDER_CATALOG = [
    TraitDescriptor("GeneA", "Gene A", GENE, placeholder=True),
    TraitDescriptor("GeneB", "Gene B", GENE, placeholder=True),
    TraitDescriptor("TF1_activity", "TF1 Activity", TF_ACTIVITY, placeholder=True),
    TraitDescriptor("TF2_activity", "TF2 Activity", TF_ACTIVITY, placeholder=True),
]


def classify_trait(key: str) -> str:
    """'tf_activity' if the key mentions activity, otherwise 'gene'."""
    return TF_ACTIVITY if "activity" in key.lower() else GENE


def format_trait_label(key: str, category: str) -> str:
    """Readable label, e.g. 'Sox2 activity(direct)' -> 'Sox2 Activity (Direct)'.

    Genes, and TF keys that do not end in an activity suffix, keep the raw key.
    """
    if category != TF_ACTIVITY:
        return key

    match = TF_LABEL_PATTERN.match(key)
    if not match:
        return key

    label = f"{match.group('name').strip()} Activity"
    qualifier = (match.group("qualifier") or "").strip()
    if qualifier:
        label += f" ({qualifier.title()})"
    return label


def build_catalog(cells: pd.DataFrame) -> List[TraitDescriptor]:
    """Derive the trait catalog from the fused record set.

    Every non-reserved column with at least one value becomes a trait, in
    column order. If there is none, the placeholder catalog is returned.
    """
    catalog = []
    for col in cells.columns:
        if col in RESERVED_FIELDS:
            continue
        if not cells[col].notna().any():
            continue
        key = str(col)
        category = classify_trait(key)
        catalog.append(TraitDescriptor(key, format_trait_label(key, category), category))

    if not catalog:
        return list(PLACEHOLDER_CATALOG)
    return catalog


def search_traits(catalog: List[TraitDescriptor], query: str) -> List[TraitDescriptor]:
    """Traits whose key or label contains `query` (case-insensitive)."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(catalog)
    return [t for t in catalog if needle in t.key.lower() or needle in t.label.lower()]


def group_by_category(catalog: List[TraitDescriptor]) -> Dict[str, List[TraitDescriptor]]:
    """Traits grouped under each entry of TRAIT_CATEGORIES (empty groups kept)."""
    groups = {cat["key"]: [] for cat in TRAIT_CATEGORIES}
    for trait in catalog:
        groups.setdefault(trait.category, []).append(trait)
    return groups


def list_slices(cells: pd.DataFrame) -> List[str]:
    return sorted(cells["slice"].astype(str).unique())


def list_regions(cells: pd.DataFrame) -> List[str]:
    return sorted(cells["region"].astype(str).unique())
