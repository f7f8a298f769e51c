"""Off-ledger metadata descriptor."""

from dataclasses import dataclass
from datetime import datetime

MATERIALS_TRAIT = "Materials"
CREATOR_TRAIT = "Artisan"
CREATION_DATE_TRAIT = "Creation Date"


@dataclass(frozen=True)
class MetadataAttribute:
    """A single trait/value pair."""

    trait: str
    value: str


@dataclass(frozen=True)
class MetadataDescriptor:
    """Canonical metadata document stored in the content-addressed store."""

    name: str
    description: str
    image: str
    attributes: tuple[MetadataAttribute, ...]

    def to_payload(self) -> dict[str, object]:
        """Return the JSON document in wire order."""
        return {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "attributes": [
                {"trait_type": attribute.trait, "value": attribute.value}
                for attribute in self.attributes
            ],
        }

    @classmethod
    def from_payload(cls, payload: dict[str, object]) -> "MetadataDescriptor":
        """Build a descriptor from a fetched JSON document, tolerating gaps."""
        raw_attributes = payload.get("attributes")
        attributes: list[MetadataAttribute] = []
        if isinstance(raw_attributes, list):
            for entry in raw_attributes:
                if not isinstance(entry, dict):
                    continue
                trait = entry.get("trait_type")
                if trait is None:
                    continue
                value = entry.get("value", "")
                attributes.append(MetadataAttribute(trait=str(trait), value=str(value)))
        return cls(
            name=_text(payload.get("name")),
            description=_text(payload.get("description")),
            image=_text(payload.get("image")),
            attributes=tuple(attributes),
        )

    def attribute(self, trait: str) -> str | None:
        """Return the first value recorded for a trait, if any."""
        for attribute in self.attributes:
            if attribute.trait == trait and attribute.value:
                return attribute.value
        return None


def build_descriptor(  # noqa: PLR0913
    *,
    name: str,
    description: str,
    image: str,
    materials: str,
    creator_details: str,
    created_at: datetime,
) -> MetadataDescriptor:
    """Build a descriptor with the fixed attribute order readers depend on."""
    return MetadataDescriptor(
        name=name,
        description=description,
        image=image,
        attributes=(
            MetadataAttribute(trait=MATERIALS_TRAIT, value=materials),
            MetadataAttribute(trait=CREATOR_TRAIT, value=creator_details),
            MetadataAttribute(trait=CREATION_DATE_TRAIT, value=created_at.isoformat()),
        ),
    )


def _text(value: object) -> str:
    return value if isinstance(value, str) else ""
