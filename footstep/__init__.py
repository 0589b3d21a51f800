"""
Footstep impact detection and classification.

This package follows SOLID principles:
- Single Responsibility: Each module owns one pipeline stage
- Open/Closed: New classifiers plug in through the Classifier interface
- Dependency Inversion: The orchestrator depends on abstractions and an
  explicit AnalysisContext rather than global state
"""

from .audio import (
    AudioBuffer,
    buffer_from_pcm_bytes,
    load_mono_wav,
    split_into_buffers,
    INT16_FULL_SCALE,
)
from .decibels import (
    DecibelCalculator,
    calculate_rms,
    rms_to_dbfs,
    dbfs_to_spl,
    normalize_decibels_spl,
)
from .ambient import AmbientLevelTracker, AmbientState
from .spectrum import SpectrumAnalyzer, FrequencySpectrum
from .detector import EventDetector, CandidateEvent
from .settings import SensitivitySettings, SensitivityConfig, AnalysisContext
from .classifier import (
    Classifier,
    HeuristicClassifier,
    ClassifierConfig,
    Classification,
    ClassificationOutcome,
    ClassificationStatus,
    FootstepType,
    EventMark,
    create_classifier,
)
from .orchestrator import (
    AnalysisOrchestrator,
    AnalysisOutcome,
    AnalysisState,
    Disposition,
    EventStream,
    FootstepEvent,
    SessionAnalysisState,
)
from .reporting import (
    events_to_dataframe,
    summarize_events,
    events_by_time_slot,
    peak_activity_slots,
    format_analysis_report,
)

__all__ = [
    # Audio
    'AudioBuffer',
    'buffer_from_pcm_bytes',
    'load_mono_wav',
    'split_into_buffers',
    'INT16_FULL_SCALE',
    # Decibels
    'DecibelCalculator',
    'calculate_rms',
    'rms_to_dbfs',
    'dbfs_to_spl',
    'normalize_decibels_spl',
    # Ambient
    'AmbientLevelTracker',
    'AmbientState',
    # Spectrum
    'SpectrumAnalyzer',
    'FrequencySpectrum',
    # Detector
    'EventDetector',
    'CandidateEvent',
    # Settings
    'SensitivitySettings',
    'SensitivityConfig',
    'AnalysisContext',
    # Classifier
    'Classifier',
    'HeuristicClassifier',
    'ClassifierConfig',
    'Classification',
    'ClassificationOutcome',
    'ClassificationStatus',
    'FootstepType',
    'EventMark',
    'create_classifier',
    # Orchestrator
    'AnalysisOrchestrator',
    'AnalysisOutcome',
    'AnalysisState',
    'Disposition',
    'EventStream',
    'FootstepEvent',
    'SessionAnalysisState',
    # Reporting
    'events_to_dataframe',
    'summarize_events',
    'events_by_time_slot',
    'peak_activity_slots',
    'format_analysis_report',
]
