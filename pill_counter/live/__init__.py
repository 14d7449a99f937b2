from .scheduler import FrameSource, LiveAnalysisScheduler, LiveSession

__all__ = ["FrameSource", "LiveAnalysisScheduler", "LiveSession"]
