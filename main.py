#!/usr/bin/env python3
"""Voice Screening — CLI entry point.

Usage:
    python main.py train [--k N]
    python main.py predict --file <audio_path> [--k N]
    python main.py sweep-k [--ks 1 3 5 7 9]
    python main.py features --file <audio_path>
    python main.py status
"""

import argparse
import asyncio
import json
import logging
import sys

from voice_screening import config
from voice_screening.errors import VoiceScreeningError
from voice_screening.feature_extractor import get_feature_names
from voice_screening.interpreter import feature_label, format_feature_value
from voice_screening.pipeline import VoiceScreeningPipeline


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _pipeline(args) -> VoiceScreeningPipeline:
    return VoiceScreeningPipeline.from_dataset(args.dataset, k=args.k)


def cmd_train(args):
    pipeline = _pipeline(args)
    metadata = asyncio.run(pipeline.ensure_model())
    print("\n" + "=" * 60)
    print("MODEL READY")
    print("=" * 60)
    print(json.dumps(metadata.to_dict(), indent=2))


def cmd_predict(args):
    pipeline = _pipeline(args)
    result = asyncio.run(pipeline.analyze_file(args.file))
    prediction = result["prediction"]

    print("\n" + "=" * 60)
    print("PREDICTION RESULT")
    print("=" * 60)
    print(f"  Label:       {prediction['label']}")
    print(f"  Probability: {prediction['probability']:.1%} (raw {prediction['raw_probability']:.1%})")
    print(f"  Risk level:  {result['risk_level']}")
    print(f"  k:           {prediction['k']}")
    accuracy = result["model"]["accuracy"]
    if accuracy is not None:
        print(f"  Model LOO accuracy: {accuracy:.1%}")
    print(f"\n  {result['summary']}")
    if result["reliability_note"]:
        print(f"\n  WARNING: {result['reliability_note']}")
    print("\n  Symptom flags:")
    for flag in result["symptom_flags"]:
        print(f"    - {flag}")
    print("\n  Recommendations:")
    for rec in result["recommendations"]:
        print(f"    - {rec}")
    print("\n  NOTE: This is a screening tool, not a medical diagnosis.")


def cmd_sweep_k(args):
    pipeline = _pipeline(args)
    result = asyncio.run(pipeline.sweep_k(tuple(args.ks)))
    print("\n" + "=" * 60)
    print("LEAVE-ONE-OUT ACCURACY BY k")
    print("=" * 60)
    for k, accuracy in result["accuracy_by_k"].items():
        shown = "n/a" if accuracy is None else f"{accuracy:.2%}"
        print(f"  k={k:<3d} accuracy={shown}")
    print(f"\n  Class distribution: {json.dumps(result['class_counts'])}")


def cmd_features(args):
    pipeline = _pipeline(args)
    features = asyncio.run(pipeline.extract_features_from_file(args.file))
    print("\n" + "=" * 60)
    print("ACOUSTIC FEATURES")
    print("=" * 60)
    for name in get_feature_names():
        print(f"  {feature_label(name):<34s} {format_feature_value(features[name])}")


def cmd_status(args):
    pipeline = _pipeline(args)
    try:
        asyncio.run(pipeline.ensure_model())
    except VoiceScreeningError as e:
        print(json.dumps({"model_loaded": False, "error": str(e)}, indent=2))
        return
    print(json.dumps(pipeline.status(), indent=2, default=str))


def main():
    parser = argparse.ArgumentParser(
        description="Voice Screening System",
        formatter_class=argparse.RawDescriptionHelpFormatter, epilog=__doc__,
    )
    parser.add_argument("--dataset", default=str(config.DATASET_PATH))
    parser.add_argument("--k", type=int, default=config.DEFAULT_K)
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("train")

    p = sub.add_parser("predict")
    p.add_argument("--file", type=str, required=True)

    p = sub.add_parser("sweep-k")
    p.add_argument("--ks", type=int, nargs="+", default=list(config.SWEEP_K_VALUES))

    p = sub.add_parser("features")
    p.add_argument("--file", type=str, required=True)

    sub.add_parser("status")

    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    cmds = {
        "train": cmd_train, "predict": cmd_predict,
        "sweep-k": cmd_sweep_k, "features": cmd_features,
        "status": cmd_status,
    }
    try:
        cmds[args.command](args)
    except VoiceScreeningError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
