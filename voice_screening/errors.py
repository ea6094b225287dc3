"""Named failure conditions raised by the screening engine.

Each one implies a different corrective action for the caller:
re-record the voice sample, fix the reference corpus, or load the model.
"""


class VoiceScreeningError(Exception):
    """Base class for all screening errors."""

    pass


class AudioDecodeError(VoiceScreeningError):
    """Raised when an audio file cannot be decoded into a waveform."""

    pass


class InsufficientVoicedSignal(VoiceScreeningError):
    """Too few reliable pitch frames: recording too short, quiet or noisy."""

    def __init__(self, voiced_frames: int, required: int):
        self.voiced_frames = voiced_frames
        self.required = required
        super().__init__(
            f"Unable to extract stable voice features: {voiced_frames} voiced "
            f"frame(s) found, at least {required} required. Record a longer, "
            "clearly sustained vowel in a quiet room."
        )


class DatasetError(VoiceScreeningError):
    """Base class for reference corpus loading failures."""

    pass


class DatasetUnavailable(DatasetError):
    """The reference corpus could not be fetched or read."""

    pass


class EmptyDataset(DatasetError):
    """The reference corpus contains no data rows."""

    pass


class MalformedRow(DatasetError):
    """A data row has a different number of fields than the header."""

    def __init__(self, line_number: int, found: int, expected: int):
        self.line_number = line_number
        self.found = found
        self.expected = expected
        super().__init__(
            f"Row {line_number} has {found} columns but expected {expected}."
        )


class MissingFeatureColumn(DatasetError):
    """A required column is absent from the corpus header."""

    def __init__(self, column: str):
        self.column = column
        super().__init__(
            f"The reference dataset is missing required column: {column}"
        )


class ModelNotReady(VoiceScreeningError):
    """Prediction was requested before a reference corpus was loaded."""

    pass
