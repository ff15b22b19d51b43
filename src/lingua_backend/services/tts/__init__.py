"""
TTS (Text-to-Speech) Services Package.

This package contains the building blocks of chunked Polly synthesis:

- text: Sentence splitting and punctuation cleanup
- chunking: Greedy packing of sentences into per-engine chunk budgets
- ssml: SSML envelope with sentence and paragraph pauses
- polly: Amazon Polly adapter with a plain-text fallback
- stitcher: Concatenates chunk audio and offsets speech marks
- pipeline: Cache-aware orchestration used by the HTTP routes
- highlight: Fuzzy sentence-to-mark alignment for playback highlighting

Architecture Overview:

    ┌──────────┐     ┌───────────┐     ┌──────────┐     ┌────────────┐
    │ raw text │────▶│ normalize │────▶│ sentences│────▶│   chunks   │
    └──────────┘     └───────────┘     └──────────┘     └────────────┘
                                                              │
                                                              ▼
    ┌──────────┐     ┌───────────┐     ┌──────────┐     ┌────────────┐
    │ response │◀────│   cache   │◀────│ stitcher │◀────│ Polly x 2  │
    └──────────┘     └───────────┘     └──────────┘     │audio, marks│
                                                        └────────────┘

The cache key is computed from the raw text before normalization, so a hit
short-circuits everything after the first box.

``pipeline`` is not re-exported here because it depends on the audio cache,
which itself imports from this package.
"""

from .errors import (
    CacheWriteError,
    InvalidSynthesisParameters,
    MarkupRejectedError,
    SynthesisError,
    TextValidationError,
    ThrottlingError,
    TTSError,
)
from .polly import PollySynthesizer, SynthesisAttempt, SynthesisOutcome
from .stitcher import SpeechMark

__all__ = [
    "CacheWriteError",
    "InvalidSynthesisParameters",
    "MarkupRejectedError",
    "PollySynthesizer",
    "SpeechMark",
    "SynthesisAttempt",
    "SynthesisError",
    "SynthesisOutcome",
    "TTSError",
    "TextValidationError",
    "ThrottlingError",
]
