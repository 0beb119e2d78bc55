from keywire._internal.capabilities import AsyncDisposable, Disposable, Startable

__all__ = ["AsyncDisposable", "Disposable", "Startable"]
