from character_dedupe.runners.local import LocalDedupeEngine

__all__ = ["LocalDedupeEngine"]
