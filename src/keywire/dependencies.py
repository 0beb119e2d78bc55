from keywire._internal.dependencies import Dependencies

__all__ = ["Dependencies"]
