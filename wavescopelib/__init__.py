from ._version import __version__
from .models import (
    AudioTrackMetadata,
    SpectralFrame,
    WaveformAnalysis,
    AnalysisJob,
    JobStatus,
    ReaderStatus,
    RunState,
)
from .errors import (
    AnalyzeError,
    InvalidRequest,
    NoAudioTrack,
    OpenFailed,
    ReaderError,
    Cancelled,
)
from .admission import AdmissionController, default_controller, shared_controller
from .reader import PCMReader, SoundFileReader, ArrayReader, AUDIO_EXTENSIONS
from .downsample import DownsamplingEngine, amplitude_db, box_downsample, normalize
from .spectral import SpectralEngine
from .analyzer import WaveformAnalyzer, AnalysisHandle
from .queue import AnalysisQueue
from .loader import WaveformLoader, samples_for_width
from .config import (
    default_config,
    merge_configs,
    validate_config,
    validate_config_fields,
    load_preset,
    save_preset,
    ConfigError,
    ConfigFieldError,
    ParamSpec,
    ANALYSIS_PARAMS,
)
from .reports import save_json, summarize
from .events import EventBus

__all__ = [
    "__version__",
    "AudioTrackMetadata",
    "SpectralFrame",
    "WaveformAnalysis",
    "AnalysisJob",
    "JobStatus",
    "ReaderStatus",
    "RunState",
    "AnalyzeError",
    "InvalidRequest",
    "NoAudioTrack",
    "OpenFailed",
    "ReaderError",
    "Cancelled",
    "AdmissionController",
    "default_controller",
    "shared_controller",
    "PCMReader",
    "SoundFileReader",
    "ArrayReader",
    "AUDIO_EXTENSIONS",
    "DownsamplingEngine",
    "amplitude_db",
    "box_downsample",
    "normalize",
    "SpectralEngine",
    "WaveformAnalyzer",
    "AnalysisHandle",
    "AnalysisQueue",
    "WaveformLoader",
    "samples_for_width",
    "default_config",
    "merge_configs",
    "validate_config",
    "validate_config_fields",
    "load_preset",
    "save_preset",
    "ConfigError",
    "ConfigFieldError",
    "ParamSpec",
    "ANALYSIS_PARAMS",
    "save_json",
    "summarize",
    "EventBus",
]
