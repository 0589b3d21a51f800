"""
Session summaries of classified footstep events.

This module turns emitted events into a DataFrame and derives the counts,
averages and time-slot histograms shown in analysis reports.

Single Responsibility: Event tabulation and report text generation.
"""
from typing import Iterable, Dict, Any, List

import pandas as pd

from .classifier import FootstepType

EVENT_COLUMNS = [
    "session_id",
    "timestamp",
    "type",
    "display_name",
    "confidence",
    "decibel_level",
    "dominant_frequency",
    "interval_from_previous",
    "impact_ratio",
]

FOOTSTEP_TYPES = [t.value for t in FootstepType if t.is_footstep]


def events_to_dataframe(events: Iterable) -> pd.DataFrame:
    """
    Tabulate FootstepEvents.

    Args:
        events: Iterable of FootstepEvent

    Returns:
        DataFrame with one row per event (EVENT_COLUMNS), sorted by timestamp
    """
    rows = []
    for event in events:
        c = event.classification
        rows.append({
            "session_id": event.session_id,
            "timestamp": event.timestamp,
            "type": c.type.value,
            "display_name": c.type.display_name,
            "confidence": c.confidence,
            "decibel_level": c.decibel_level,
            "dominant_frequency": c.dominant_frequency,
            "interval_from_previous": c.interval_from_previous,
            "impact_ratio": c.impact_ratio,
        })

    if not rows:
        return pd.DataFrame(columns=EVENT_COLUMNS)

    df = pd.DataFrame(rows, columns=EVENT_COLUMNS)
    df["interval_from_previous"] = pd.to_numeric(df["interval_from_previous"], errors="coerce")
    return df.sort_values("timestamp").reset_index(drop=True)


def summarize_events(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Summary statistics for an events DataFrame.

    Returns:
        Dict with total_events, counts_by_type (every footstep type, zero
        filled), mean_decibel_level, max_decibel_level,
        mean_dominant_frequency and mean_interval (None when not available)
    """
    counts = {name: 0 for name in FOOTSTEP_TYPES}

    if df.empty:
        return {
            "total_events": 0,
            "counts_by_type": counts,
            "mean_decibel_level": None,
            "max_decibel_level": None,
            "mean_dominant_frequency": None,
            "mean_interval": None,
        }

    for name, count in df["type"].value_counts().items():
        counts[name] = int(count)

    intervals = df["interval_from_previous"].dropna()

    return {
        "total_events": int(len(df)),
        "counts_by_type": counts,
        "mean_decibel_level": float(df["decibel_level"].mean()),
        "max_decibel_level": float(df["decibel_level"].max()),
        "mean_dominant_frequency": float(df["dominant_frequency"].mean()),
        "mean_interval": float(intervals.mean()) if not intervals.empty else None,
    }


def events_by_time_slot(df: pd.DataFrame, slot_sec: float = 60.0) -> pd.DataFrame:
    """
    Count events per type in fixed-length time slots.

    Args:
        df: Events DataFrame
        slot_sec: Slot length in seconds

    Returns:
        DataFrame indexed by slot start time (seconds) with one column per
        footstep type; only slots containing events are present
    """
    if slot_sec <= 0:
        raise ValueError("slot_sec must be positive")

    if df.empty:
        empty = pd.DataFrame(columns=FOOTSTEP_TYPES, dtype=int)
        empty.index.name = "slot_start"
        return empty

    slots = (df["timestamp"] // slot_sec) * slot_sec
    table = pd.crosstab(slots.rename("slot_start"), df["type"])
    table = table.reindex(columns=FOOTSTEP_TYPES, fill_value=0)
    table.columns.name = None
    return table.sort_index()


def peak_activity_slots(df: pd.DataFrame, slot_sec: float = 60.0, top: int = 3) -> List[float]:
    """
    Start times of the busiest slots, busiest first.

    Ties are broken by the earlier slot.
    """
    table = events_by_time_slot(df, slot_sec)
    if table.empty:
        return []

    totals = table.sum(axis=1).reset_index()
    totals.columns = ["slot_start", "count"]
    totals = totals.sort_values(["count", "slot_start"], ascending=[False, True])
    return [float(s) for s in totals["slot_start"].head(top)]


def _format_time(seconds: float) -> str:
    minutes, secs = divmod(seconds, 60.0)
    return f"{int(minutes):02d}:{secs:05.2f}"


def format_analysis_report(df: pd.DataFrame, title: str = "Footstep Analysis Report") -> str:
    """
    Plain-text report of a session.

    Args:
        df: Events DataFrame
        title: Report heading

    Returns:
        Formatted report text
    """
    lines = [title, "=" * 60]

    if df.empty:
        lines.append("No footstep events detected.")
        return "\n".join(lines)

    summary = summarize_events(df)
    lines.append(f"Total events: {summary['total_events']}")
    lines.append("")
    lines.append("Events by type:")
    for footstep_type in FootstepType:
        if not footstep_type.is_footstep:
            continue
        lines.append(f"  {footstep_type.display_name:<18} {summary['counts_by_type'][footstep_type.value]}")
    lines.append("")
    lines.append(f"Average level:        {summary['mean_decibel_level']:.1f} dB")
    lines.append(f"Peak level:           {summary['max_decibel_level']:.1f} dB")
    lines.append(f"Average dominant freq: {summary['mean_dominant_frequency']:.1f} Hz")
    if summary["mean_interval"] is not None:
        lines.append(f"Average interval:     {summary['mean_interval']:.2f}s")
    lines.append("")

    lines.append(f"{'Time':<10} {'Type':<18} {'Level':>8} {'Freq':>8} {'Impact':>7} {'Conf':>6}")
    lines.append("-" * 60)
    for _, row in df.iterrows():
        lines.append(
            f"{_format_time(row['timestamp']):<10} {row['display_name']:<18} "
            f"{row['decibel_level']:>6.1f}dB {row['dominant_frequency']:>6.0f}Hz "
            f"{row['impact_ratio']:>7.2f} {row['confidence']:>6.2f}"
        )

    return "\n".join(lines)
