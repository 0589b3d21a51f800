#!/usr/bin/env python3
"""Replay a WAV recording through the footstep analysis pipeline and report the events."""
from pathlib import Path
from typing import Optional

import pandas as pd

import config_loader
from logger import get_logger, setup_logging_from_config, log_analysis_settings
from footstep import (
    AnalysisOrchestrator,
    events_to_dataframe,
    format_analysis_report,
    load_mono_wav,
    peak_activity_slots,
    split_into_buffers,
)

log = get_logger(__name__)


def analyze_recording(
    wav_path: Path,
    config: dict,
    buffer_size: Optional[int] = None,
    ambient_level: Optional[float] = None,
    sensitivity: Optional[float] = None,
    offset_db: Optional[float] = None
) -> pd.DataFrame:
    """
    Analyze one recording as a single session.

    Args:
        wav_path: 16-bit PCM WAV file
        config: Loaded configuration
        buffer_size: Samples per buffer (defaults to audio.buffer_size)
        ambient_level: Start pre-calibrated at this ambient dB level
        sensitivity: Detector sensitivity override (0-1)
        offset_db: Tier offset override in dB

    Returns:
        Events DataFrame
    """
    samples, sr = load_mono_wav(wav_path)
    if buffer_size is None:
        buffer_size = config["audio"]["buffer_size"]

    log.info(f"Loaded {wav_path} ({len(samples) / sr:.1f}s at {sr} Hz)")

    orchestrator = AnalysisOrchestrator(config)
    if sensitivity is not None:
        orchestrator.set_sensitivity(sensitivity)
    if offset_db is not None:
        orchestrator.set_sensitivity_offset(offset_db)

    events = orchestrator.analyze(
        split_into_buffers(samples, sr, buffer_size),
        session_id=wav_path.stem,
        initial_ambient_level=ambient_level,
    )
    return events_to_dataframe(events)


def main(argv=None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Detect and classify footsteps in a WAV recording")
    parser.add_argument("wav", type=Path, help="Path to 16-bit WAV file")
    parser.add_argument("--config", type=Path, help="Path to config.json")
    parser.add_argument("--buffer-size", type=int, help="Samples per analysis buffer")
    parser.add_argument("--ambient", type=float, help="Pre-calibrated ambient level in dB SPL")
    parser.add_argument("--sensitivity", type=float, help="Detector sensitivity 0-1")
    parser.add_argument("--offset", type=float, help="Tier sensitivity offset in dB")
    parser.add_argument("--slot", type=float, default=60.0, help="Time slot for peak activity (seconds)")
    parser.add_argument("--csv", type=Path, help="Write events to this CSV file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    config = config_loader.load_config(args.config)
    setup_logging_from_config(config, debug=args.debug)
    log_analysis_settings(log, config)

    if not args.wav.exists():
        log.error(f"Recording not found: {args.wav}")
        return 1

    df = analyze_recording(
        args.wav,
        config,
        buffer_size=args.buffer_size,
        ambient_level=args.ambient,
        sensitivity=args.sensitivity,
        offset_db=args.offset,
    )

    print(format_analysis_report(df, title=f"Footstep Analysis: {args.wav.name}"))

    peaks = peak_activity_slots(df, slot_sec=args.slot)
    if peaks:
        print()
        print("Peak activity: " + ", ".join(f"{start:.0f}s" for start in peaks))

    if args.csv:
        df.to_csv(args.csv, index=False)
        print(f"Events saved to {args.csv}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
