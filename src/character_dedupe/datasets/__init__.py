from character_dedupe.datasets.profiles import CARD_SCHEMA, record_to_card
from character_dedupe.datasets.reference import ReferenceDatasetGenerator

__all__ = ["CARD_SCHEMA", "ReferenceDatasetGenerator", "record_to_card"]
