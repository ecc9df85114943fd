"""Services module for vidqueue."""

from vidqueue.services.extractor import (
    ErrorChunk,
    ExtractionProcess,
    Exited,
    OutputChunk,
    YtDlpInvoker,
)
from vidqueue.services.interfaces import IExtractionInvoker, IExtractionProcess
from vidqueue.services.output_parser import OutputParser, ParsedUpdate
from vidqueue.services.url_classifier import UrlClassifier

__all__ = [
    "ErrorChunk",
    "Exited",
    "ExtractionProcess",
    "IExtractionInvoker",
    "IExtractionProcess",
    "OutputChunk",
    "OutputParser",
    "ParsedUpdate",
    "UrlClassifier",
    "YtDlpInvoker",
]
