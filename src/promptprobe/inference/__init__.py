from __future__ import annotations

from importlib import import_module as _import_module

_schema_module = _import_module(".schema", package=__name__)
AnalysisResult = _schema_module.AnalysisResult
BatchResult = _schema_module.BatchResult
Candidate = _schema_module.Candidate

_engine_module = _import_module(".engine", package=__name__)
InferenceEngine = _engine_module.InferenceEngine
SubprocessEngine = _engine_module.SubprocessEngine

_client_module = _import_module(".client", package=__name__)
InferenceClient = _client_module.InferenceClient

__all__: list[str] = [
    "AnalysisResult",
    "BatchResult",
    "Candidate",
    "InferenceClient",
    "InferenceEngine",
    "SubprocessEngine",
]
