"""
Reference player catalog.

The catalog is a static list of ReferenceProfile entries loaded from YAML at
startup (the bundled grandmasters.yaml unless another file is configured).
Entries are never mutated after loading.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml
from loguru import logger

from playstyle_match.evaluation.playstyle_metrics import TRAITS, StyleVector

DEFAULT_CATALOG_PATH = Path(__file__).parent / "grandmasters.yaml"


@dataclass(frozen=True)
class ReferenceProfile:
    """
    A catalog entry.

    Attributes:
        id: Stable identifier returned by the matcher
        name: Display name
        playstyle: Target StyleVector used for matching
        years: Display lifespan
        description: Short prose description
        achievements: Notable achievements
        famous_game: A representative game
        image_path: Portrait path for the UI collaborator
    """
    id: str
    name: str
    playstyle: StyleVector
    years: str = ""
    description: str = ""
    achievements: Tuple[str, ...] = field(default_factory=tuple)
    famous_game: str = ""
    image_path: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "years": self.years,
            "description": self.description,
            "playstyle": self.playstyle.to_dict(),
            "achievements": list(self.achievements),
            "famous_game": self.famous_game,
            "image_path": self.image_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReferenceProfile":
        """
        Create a profile from a catalog mapping.

        Raises:
            ValueError: If required fields or traits are missing
        """
        for key in ("id", "name", "playstyle"):
            if key not in data:
                raise ValueError(f"Catalog entry is missing '{key}': {data}")

        playstyle = data["playstyle"]
        missing = [t for t in TRAITS if t not in playstyle]
        if missing:
            raise ValueError(f"Catalog entry '{data['id']}' is missing traits: {missing}")

        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            playstyle=StyleVector.from_dict(playstyle),
            years=str(data.get("years", "")),
            description=str(data.get("description", "")).strip(),
            achievements=tuple(data.get("achievements", [])),
            famous_game=str(data.get("famous_game", "")),
            image_path=str(data.get("image_path", "")),
        )


def load_catalog(path: Optional[str] = None) -> List[ReferenceProfile]:
    """
    Load a reference catalog from YAML.

    Args:
        path: Catalog file (None = bundled catalog)

    Returns:
        Catalog entries in file order

    Raises:
        FileNotFoundError: If the catalog file doesn't exist
        ValueError: If the catalog is empty or malformed
    """
    log = logger.bind(context="load_catalog")
    catalog_file = Path(path) if path else DEFAULT_CATALOG_PATH

    if not catalog_file.exists():
        raise FileNotFoundError(f"Catalog file not found: {catalog_file}")

    with open(catalog_file, 'r', encoding='utf-8') as f:
        entries = yaml.safe_load(f)

    if not isinstance(entries, list) or not entries:
        raise ValueError(f"Catalog must be a non-empty list: {catalog_file}")

    profiles = [ReferenceProfile.from_dict(entry) for entry in entries]

    ids = [p.id for p in profiles]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValueError(f"Duplicate catalog ids: {duplicates}")

    log.debug(f"Loaded {len(profiles)} reference profiles from {catalog_file}")
    return profiles


@lru_cache(maxsize=1)
def default_catalog() -> Tuple[ReferenceProfile, ...]:
    """The bundled catalog, loaded once."""
    return tuple(load_catalog())


def get_profile(catalog: Sequence[ReferenceProfile], profile_id: str) -> ReferenceProfile:
    """
    Look up a profile by id.

    Raises:
        KeyError: If no profile has this id
    """
    for profile in catalog:
        if profile.id == profile_id:
            return profile
    raise KeyError(profile_id)
