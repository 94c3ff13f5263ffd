from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from character_dedupe.config import EngineSettings
from character_dedupe.datasets import CARD_SCHEMA, ReferenceDatasetGenerator, record_to_card
from character_dedupe.models import CharacterRecord, DuplicateGroup, RecordMatch, RelatedMatch, ScanProgress
from character_dedupe.runners import LocalDedupeEngine
from character_dedupe.steps import RelatedOptions

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level), format=_LOG_FORMAT)

    if args.command == "run-test":
        run_test(
            size=args.size,
            duplicate_rate=args.duplicate_rate,
            seed=args.seed,
            output_dir=args.output_dir,
            input_json=args.input_json,
            min_score=args.min_score,
            show_groups=args.show_groups,
        )
        return
    if args.command == "check":
        run_check(input_json=args.input_json, candidate_json=args.candidate_json)
        return
    if args.command == "related":
        run_related(
            input_json=args.input_json,
            record_id=args.record_id,
            limit=args.limit,
            options=RelatedOptions(
                use_tags=not args.no_tags,
                use_creator=not args.no_creator,
                use_content=not args.no_content,
            ),
        )
        return

    parser.print_help()


def run_test(
    *,
    size: int,
    duplicate_rate: float,
    seed: int,
    output_dir: Path,
    input_json: Path | None,
    min_score: int | None,
    show_groups: int,
) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)

    if input_json is None:
        records = ReferenceDatasetGenerator(seed=seed).generate(size=size, duplicate_rate=duplicate_rate)
        dataset_path = output_dir / "test_collection.json"
        _write_json(dataset_path, [record_to_card(record) for record in records])
    else:
        records = _read_records_json(input_json)
        dataset_path = input_json

    engine = LocalDedupeEngine.from_records(records, settings=EngineSettings())
    groups = engine.scan_for_duplicates(min_score=min_score, on_progress=_log_progress)

    groups_path = output_dir / "groups.json"
    summary_path = output_dir / "summary.json"
    _write_json(groups_path, [_group_payload(group) for group in groups])
    summary = _build_summary(
        record_count=len(records),
        groups=groups,
        pairs_scored=engine.clusterer.stats["pairs_scored"],
        dataset_path=dataset_path,
        groups_path=groups_path,
    )
    _write_json(summary_path, summary)

    print(f"Dataset: {dataset_path}")
    print(f"Groups: {groups_path}")
    print(f"Summary: {summary_path}")
    print("---")
    print(f"records={summary['record_count']}")
    print(f"pairs_scored={summary['pairs_scored']}")
    print(f"groups={summary['group_count']}")
    print(f"grouped_records={summary['grouped_record_count']}")
    print(f"by_confidence={summary['by_confidence']}")
    if show_groups > 0:
        print("---")
        print("sample_groups=")
        print(json.dumps([_group_payload(group) for group in groups[:show_groups]], indent=2))


def run_check(*, input_json: Path, candidate_json: Path) -> None:
    engine = LocalDedupeEngine.from_records(_read_records_json(input_json), settings=EngineSettings())
    with candidate_json.open("r", encoding="utf-8") as handle:
        candidate = json.load(handle)
    if not isinstance(candidate, dict):
        raise SystemExit(f"{candidate_json} must contain a single character card object")

    matches = engine.check_before_insert(candidate)
    print(json.dumps([_match_payload(match) for match in matches], indent=2))


def run_related(*, input_json: Path, record_id: str, limit: int, options: RelatedOptions) -> None:
    engine = LocalDedupeEngine.from_records(_read_records_json(input_json), settings=EngineSettings())
    source = engine.resolve(record_id)
    if source is None:
        raise SystemExit(f"record {record_id!r} not found in {input_json}")

    related = engine.rank_related(source, options=options, limit=limit)
    print(json.dumps([_related_payload(match) for match in related], indent=2))


def _build_summary(
    *,
    record_count: int,
    groups: list[DuplicateGroup],
    pairs_scored: int,
    dataset_path: Path,
    groups_path: Path,
) -> dict[str, object]:
    group_sizes = [len(group.members) + 1 for group in groups]
    by_confidence: dict[str, int] = {}
    for group in groups:
        by_confidence[group.confidence.value] = by_confidence.get(group.confidence.value, 0) + 1

    return {
        "record_count": record_count,
        "pairs_scored": pairs_scored,
        "group_count": len(groups),
        "grouped_record_count": sum(group_sizes),
        "avg_group_size": round(sum(group_sizes) / len(group_sizes), 3) if group_sizes else 0.0,
        "max_group_size": max(group_sizes) if group_sizes else 0,
        "by_confidence": by_confidence,
        "dataset_path": str(dataset_path),
        "groups_path": str(groups_path),
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="character-dedupe", description="Character dedupe CLI")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="WARNING")
    subparsers = parser.add_subparsers(dest="command")

    run_test_parser = subparsers.add_parser(
        "run-test",
        help="Generate or load a collection, scan for duplicates, and output groups + summary",
    )
    run_test_parser.add_argument("--size", type=int, default=500)
    run_test_parser.add_argument("--duplicate-rate", type=float, default=0.15)
    run_test_parser.add_argument("--seed", type=int, default=42)
    run_test_parser.add_argument("--min-score", type=int, default=None)
    run_test_parser.add_argument("--input-json", type=Path, default=None)
    run_test_parser.add_argument("--output-dir", type=Path, default=Path("data/cli_output"))
    run_test_parser.add_argument("--show-groups", type=int, default=10)

    check_parser = subparsers.add_parser("check", help="Check one card against a collection before import")
    check_parser.add_argument("--input-json", type=Path, required=True)
    check_parser.add_argument("--candidate-json", type=Path, required=True)

    related_parser = subparsers.add_parser("related", help="Rank records related to one record")
    related_parser.add_argument("--input-json", type=Path, required=True)
    related_parser.add_argument("--record-id", type=str, required=True)
    related_parser.add_argument("--limit", type=int, default=10)
    related_parser.add_argument("--no-tags", action="store_true")
    related_parser.add_argument("--no-creator", action="store_true")
    related_parser.add_argument("--no-content", action="store_true")

    return parser


def _log_progress(progress: ScanProgress) -> None:
    logger.info("scanned %d/%d records, %d groups", progress.processed, progress.total, progress.groups_found)


def _write_json(path: Path, payload: object) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)


def _read_records_json(path: Path) -> list[CharacterRecord]:
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if isinstance(payload, dict):
        payload = payload.get("characters", [])

    records: list[CharacterRecord] = []
    for card in payload:
        if not isinstance(card, dict):
            continue
        record = CARD_SCHEMA.build_record(card)
        if not record.id:
            logger.warning("skipping card without an id: %r", record.name)
            continue
        records.append(record)
    return records


def _record_payload(record: CharacterRecord) -> dict[str, Any]:
    return {"id": record.id, "name": record.name, "creator": record.creator}


def _match_payload(match: RecordMatch) -> dict[str, Any]:
    return {
        **_record_payload(match.record),
        "score": match.result.score,
        "confidence": match.result.confidence.value,
        "breakdown": match.result.breakdown,
        "reasons": list(match.result.match_reasons),
    }


def _group_payload(group: DuplicateGroup) -> dict[str, Any]:
    return {
        "reference": _record_payload(group.reference),
        "confidence": group.confidence.value,
        "max_score": group.max_score,
        "members": [_match_payload(member) for member in group.members],
    }


def _related_payload(match: RelatedMatch) -> dict[str, Any]:
    return {
        **_record_payload(match.record),
        "score": match.score,
        "breakdown": match.breakdown,
        "reasons": list(match.reasons),
    }


if __name__ == "__main__":
    main()
