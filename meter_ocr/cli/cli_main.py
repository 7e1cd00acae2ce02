#!/usr/bin/env python3
import argparse
import json
import logging
import os
import sys
from importlib.metadata import version, PackageNotFoundError
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from meter_ocr.core.config import LearningConfig, OCRConfig, StorageConfig, default_db_path
from meter_ocr.exceptions import MeterOCRError
from meter_ocr.learning.coordinator import LearningCoordinator
from meter_ocr.storage.sqlite import SQLiteStore
from meter_ocr.types import Context, ErrorKind, OCRResult


def create_arg_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="meter-ocr",
        description="Learn correction rules from user-corrected meter readings and apply them to new OCR output",
        formatter_class=lambda prog: argparse.HelpFormatter(prog, max_help_position=52),
    )

    try:
        package_version = version("meter-ocr-learning")
    except PackageNotFoundError:
        package_version = "unknown"
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {package_version}")

    parser.add_argument(
        "--log_level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Logging level. Default: INFO"
    )
    parser.add_argument("--db_path", help="SQLite database file. Can also use METER_OCR_DB_PATH env var.")
    parser.add_argument(
        "--promotion_threshold", type=int, default=5, help="Occurrences needed before a mistake becomes a rule. Default: 5"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stats", help="Show learning statistics")
    subparsers.add_parser("rules", help="List learned correction rules")
    subparsers.add_parser("patterns", help="List recorded mistake patterns")
    observations_parser = subparsers.add_parser("observations", help="List recorded user corrections")
    observations_parser.add_argument(
        "--error_kind", choices=[kind.value for kind in ErrorKind], help="Only list corrections of this kind"
    )

    apply_parser = subparsers.add_parser("apply", help="Apply learned rules to an OCR reading")
    apply_parser.add_argument("text", help="Reading as returned by the OCR engine")
    apply_parser.add_argument("--confidence", type=float, default=0.0, help="OCR confidence in [0, 1]. Default: 0.0")
    apply_parser.add_argument("--device_type", help="Meter type, e.g. gas or water")

    correct_parser = subparsers.add_parser("correct", help="Record a user correction of an OCR reading")
    correct_parser.add_argument("original", help="Reading as returned by the OCR engine")
    correct_parser.add_argument("corrected", help="Value entered by the user")
    correct_parser.add_argument("--confidence", type=float, default=0.0, help="OCR confidence in [0, 1]. Default: 0.0")
    correct_parser.add_argument("--device_type", help="Meter type, e.g. gas or water")

    recognize_parser = subparsers.add_parser("recognize", help="Read a meter photograph with Tesseract and apply learned rules")
    recognize_parser.add_argument("image", help="Path to the meter photograph")
    recognize_parser.add_argument("--device_type", help="Meter type, e.g. gas or water")
    recognize_parser.add_argument("--language", default="eng", help="Tesseract language. Default: eng")

    reset_parser = subparsers.add_parser("reset", help="Delete all learned state")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address. Default: 127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port. Default: 8000")

    return parser


def get_config_from_env() -> Dict[str, Optional[str]]:
    """Load configuration from environment variables."""
    load_dotenv()
    return {"db_path": os.getenv("METER_OCR_DB_PATH")}


def setup_logging(log_level: str) -> logging.Logger:
    """Configure logging with consistent format."""
    logger = logging.getLogger("meter_ocr")
    log_level_enum = getattr(logging, log_level.upper())
    logger.setLevel(log_level_enum)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(fmt="%(asctime)s.%(msecs)03d - %(levelname)s - %(module)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def create_configs(args: argparse.Namespace, env_config: Dict[str, Optional[str]]) -> tuple[LearningConfig, StorageConfig]:
    """Create configuration objects from arguments and environment variables."""
    learning_config = LearningConfig(promotion_threshold=args.promotion_threshold)
    storage_config = StorageConfig(db_path=args.db_path or env_config.get("db_path") or default_db_path())
    return learning_config, storage_config


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def run_command(args: argparse.Namespace, coordinator: LearningCoordinator, logger: logging.Logger) -> int:
    """Execute the selected subcommand against an initialized coordinator."""
    if args.command == "stats":
        print_json(coordinator.get_statistics().to_dict())
    elif args.command == "rules":
        print_json([{**rule.to_dict(), "id": rule.id} for rule in coordinator.list_rules()])
    elif args.command == "patterns":
        print_json([pattern.to_dict() for pattern in coordinator.list_patterns()])
    elif args.command == "observations":
        error_kind = ErrorKind(args.error_kind) if args.error_kind else None
        print_json([{**o.to_dict(), "id": o.id} for o in coordinator.list_observations(error_kind)])
    elif args.command == "apply":
        result = coordinator.apply(OCRResult(text=args.text, confidence=args.confidence), Context(device_type=args.device_type))
        print_json(result.to_dict())
    elif args.command == "correct":
        observation = coordinator.submit_correction(
            OCRResult(text=args.original, confidence=args.confidence),
            args.corrected,
            context=Context(device_type=args.device_type),
        )
        if observation is None:
            logger.info("Reading unchanged; nothing recorded")
        else:
            print_json({**observation.to_dict(), "id": observation.id})
    elif args.command == "recognize":
        from meter_ocr.ocr.tesseract import TesseractEngine
        from meter_ocr.service import AdaptiveOCRService

        engine = TesseractEngine(config=OCRConfig(language=args.language), logger=logger)
        service = AdaptiveOCRService(engine, coordinator, logger=logger)
        print_json(service.recognize_with_learning(args.image, Context(device_type=args.device_type)).to_dict())
    elif args.command == "reset":
        if not args.yes:
            logger.error("Refusing to delete learned state without --yes")
            return 1
        coordinator.reset_learning_state()
    elif args.command == "serve":
        from meter_ocr.review.server import LearningServer

        LearningServer(coordinator, logger=logger).start(host=args.host, port=args.port)
    return 0


def main(args_list: Optional[list[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = create_arg_parser()
    args = parser.parse_args(args_list)

    logger = setup_logging(args.log_level)
    env_config = get_config_from_env()
    learning_config, storage_config = create_configs(args, env_config)

    try:
        coordinator = LearningCoordinator(SQLiteStore(storage_config.db_path, logger=logger), config=learning_config, logger=logger)
        coordinator.initialize()
        try:
            exit_code = run_command(args, coordinator, logger)
        finally:
            coordinator.shutdown()
    except MeterOCRError as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
