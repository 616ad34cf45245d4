# chess_reviewer/exceptions.py
"""
Defines custom exceptions for the Chess Reviewer application.

Centralizing exceptions here avoids circular dependencies when different
modules need to catch exceptions defined by other components.
"""

# --- General ---
class ChessReviewError(Exception):
    """Base class for all application-specific errors."""
    pass

# --- Engine Errors ---
class EngineError(ChessReviewError):
    """Base class for engine session and orchestration errors."""
    pass

class EngineInitializationError(EngineError):
    """Error while spawning or handshaking with the engine process."""
    pass

class EngineSessionError(EngineError):
    """The engine process crashed, closed its output, or rejected a command."""
    pass

# --- Cloud Evaluation Errors ---
class CloudEvaluationError(ChessReviewError):
    """Transport or format error while querying the cloud evaluation service."""
    pass

# --- Run Control ---
class AnalysisCancelledError(ChessReviewError):
    """Raised when an analysis run is abandoned through its cancel event."""
    pass

# --- PGN Handler Errors ---
class PGNError(ChessReviewError):
    """Base class for PGN handling errors."""
    pass

class PGNImportError(PGNError):
    """Error encountered while reading or parsing PGN input."""
    pass

class PGNExportError(PGNError):
    """Error encountered while writing or exporting a PGN file."""
    pass

# --- Reporting Errors ---
class ReportGenerationError(ChessReviewError):
    """Base class for errors encountered during report generation."""
    pass

class ReportWriteError(ReportGenerationError):
    """Specific error for CSV/JSON report writing issues."""
    pass
