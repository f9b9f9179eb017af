import io
import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

logger = logging.getLogger("sitebook-catalog")

REF_COLUMN = "BOQ Ref"


@dataclass(frozen=True)
class CatalogEntry:
    reference_code: str
    description: str = ""
    unit: str = ""
    rate: Optional[float] = None
    asset: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


DEFAULT_ENTRIES = [
    CatalogEntry("A001", "Asphalt overlay", "m²", 45.50, asset="Road Surface"),
    CatalogEntry("A002", "Storm drain installation", "m", 125.00, asset="Drainage"),
    CatalogEntry("A003", "LED street light", "NR", 850.00, asset="Lighting"),
]


class CatalogEngine:
    """
    BOQ catalog keyed by reference code. Lookups that miss return None so the
    caller leaves description/unit/rate blank.
    """

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._entries: Dict[str, CatalogEntry] = {}
        for entry in entries:
            self._entries[entry.reference_code] = entry

    @classmethod
    def default(cls) -> "CatalogEngine":
        return cls(DEFAULT_ENTRIES)

    @classmethod
    def from_csv(cls, source: Union[str, bytes]) -> "CatalogEngine":
        """
        Load a catalog from a CSV path or raw bytes with the columns
        ``BOQ Ref, Description, Unit, Rate`` (``Asset`` optional).
        """
        if isinstance(source, bytes):
            df = pd.read_csv(io.StringIO(source.decode("utf-8-sig")), dtype=str, keep_default_na=False)
        else:
            df = pd.read_csv(source, dtype=str, keep_default_na=False)
        df.columns = df.columns.str.strip()
        if REF_COLUMN not in df.columns:
            raise ValueError(f"Catalog CSV is missing the '{REF_COLUMN}' column")

        rates = pd.to_numeric(df.get("Rate", pd.Series([""] * len(df))), errors="coerce")
        entries: List[CatalogEntry] = []
        skipped = 0
        for idx, row in df.iterrows():
            ref = str(row[REF_COLUMN]).strip()
            if not ref:
                skipped += 1
                continue
            rate = float(rates.iloc[idx])
            entries.append(CatalogEntry(
                reference_code=ref,
                description=str(row.get("Description", "")).strip(),
                unit=str(row.get("Unit", "")).strip(),
                rate=None if math.isnan(rate) or rate < 0 else float(rate),
                asset=str(row.get("Asset", "")).strip(),
            ))
        if skipped:
            logger.info(f"Catalog CSV: skipped {skipped} row(s) without a BOQ ref")
        return cls(entries)

    def lookup(self, reference_code: Optional[str]) -> Optional[CatalogEntry]:
        if not reference_code:
            return None
        return self._entries.get(reference_code)

    def search(self, term: str = "") -> List[CatalogEntry]:
        """Case-insensitive substring match over "<ref> - <description>"."""
        needle = (term or "").strip().lower()
        if not needle:
            return list(self._entries.values())
        return [
            e for e in self._entries.values()
            if needle in f"{e.reference_code} - {e.description}".lower()
        ]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, reference_code: str) -> bool:
        return reference_code in self._entries
